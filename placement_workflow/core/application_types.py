"""
Application type policy.

Per-type rules used to reject illegal input before any database access.
"""
from enum import Enum
from typing import Dict, Any

from placement_workflow.core.status_transitions import ApplicationStatus


class ApplicationType(str, Enum):
    DIRECT = "direct"
    PROXY = "proxy"
    REFERRAL = "referral"
    BD = "bd"


APPLICATION_TYPE_POLICIES: Dict[ApplicationType, Dict[str, Any]] = {
    ApplicationType.DIRECT: {
        "requires_mentor": False,
        "requires_service_entitlement": False,
        "initial_status": ApplicationStatus.SUBMITTED,
    },
    ApplicationType.PROXY: {
        "requires_mentor": False,
        "requires_service_entitlement": True,
        "initial_status": ApplicationStatus.SUBMITTED,
    },
    ApplicationType.REFERRAL: {
        "requires_mentor": True,
        "requires_service_entitlement": False,
        "initial_status": ApplicationStatus.RECOMMENDED,
    },
    ApplicationType.BD: {
        "requires_mentor": False,
        "requires_service_entitlement": True,
        "initial_status": ApplicationStatus.SUBMITTED,
    },
}


def parse_application_type(value) -> ApplicationType:
    """
    Convert a raw value into an ApplicationType.
    
    Raises:
        ValueError: If value is not a known application type
    """
    if isinstance(value, ApplicationType):
        return value
    return ApplicationType(str(value).strip().lower())


def requires_mentor(application_type) -> bool:
    """Only referral applications go through mentor assignment."""
    return APPLICATION_TYPE_POLICIES[parse_application_type(application_type)]["requires_mentor"]


def requires_service_entitlement(application_type) -> bool:
    """Proxy and BD applications consume a contracted service entitlement."""
    return APPLICATION_TYPE_POLICIES[parse_application_type(application_type)]["requires_service_entitlement"]


def get_initial_status(application_type) -> ApplicationStatus:
    """Status an application of this type is created with."""
    return APPLICATION_TYPE_POLICIES[parse_application_type(application_type)]["initial_status"]
