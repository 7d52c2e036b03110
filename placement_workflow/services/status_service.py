"""
Single-application status changes: the generic status update and the
dedicated mentor assignment.

Both lock the application row, validate against the transition table, write
the status and one history row in the same transaction, and publish after commit.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from placement_workflow.core.application_types import requires_mentor
from placement_workflow.core.status_transitions import ApplicationStatus, parse_status, can_transition
from placement_workflow.core.exceptions import ValidationError, InvalidTransitionError
from placement_workflow.core.validation import require_id
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.services.application_service import get_application
from placement_workflow.services.audit_trail import apply_status_change
from placement_workflow.services.event_publisher import (
    EventPublisher,
    build_status_event,
    build_submitted_event,
    publish_events,
)

logger = logging.getLogger(__name__)


def update_status(
    db: Session,
    application_id: int,
    target_status,
    actor_id: str,
    reason: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> JobApplication:
    """
    Move an application along one legal edge of the status graph.

    mentor_assigned is never reachable here; use assign_mentor.

    Raises:
        ValidationError: Missing actor or unknown status
        InvalidTransitionError: Target is mentor_assigned or not legal from the current status
        ApplicationNotFoundError: If the application does not exist
    """
    actor_id = require_id(actor_id, "actor_id")
    try:
        target = parse_status(target_status)
    except ValueError:
        raise ValidationError(f"Unknown status: {target_status}", {"field": "status"})

    if target == ApplicationStatus.MENTOR_ASSIGNED:
        raise InvalidTransitionError(
            None,
            target.value,
            message="mentor_assigned can only be set through mentor assignment",
        )

    try:
        application = get_application(db, application_id, for_update=True)
        previous_status = application.status
        if not can_transition(previous_status, target):
            logger.warning(
                f"Status change rejected: application_id={application_id}, "
                f"from={previous_status}, to={target.value}"
            )
            raise InvalidTransitionError(previous_status, target.value)

        now = datetime.now(timezone.utc)
        apply_status_change(db, application, target.value, actor_id, reason=reason)
        events = [build_status_event(application.id, previous_status, target.value, actor_id, now)]
        if target == ApplicationStatus.SUBMITTED:
            application.submitted_at = now
            events.append(build_submitted_event(application, now))
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Status changed: application_id={application_id}, from={previous_status}, to={target.value}")
    publish_events(publisher, events)
    return application


def assign_mentor(
    db: Session,
    application_id: int,
    mentor_id: str,
    actor_id: str,
    reason: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> JobApplication:
    """
    Assign a mentor to a referral application and move it to mentor_assigned.

    The mentor ID and the status are written together.

    Raises:
        ValidationError: Missing mentor or actor
        InvalidTransitionError: Not a referral application, or current status cannot move to mentor_assigned
        ApplicationNotFoundError: If the application does not exist
    """
    actor_id = require_id(actor_id, "actor_id")
    mentor_id = require_id(mentor_id, "mentor_id")
    target = ApplicationStatus.MENTOR_ASSIGNED.value

    try:
        application = get_application(db, application_id, for_update=True)
        previous_status = application.status
        if not requires_mentor(application.application_type):
            logger.warning(
                f"Mentor assignment rejected: application_id={application_id}, "
                f"type={application.application_type}"
            )
            raise InvalidTransitionError(
                previous_status,
                target,
                message=f"Mentor assignment is only allowed for referral applications, got {application.application_type}",
            )
        if not can_transition(previous_status, target):
            logger.warning(
                f"Mentor assignment rejected: application_id={application_id}, from={previous_status}"
            )
            raise InvalidTransitionError(previous_status, target)

        now = datetime.now(timezone.utc)
        application.assigned_mentor_id = mentor_id
        apply_status_change(
            db,
            application,
            target,
            actor_id,
            reason=reason or "Mentor assigned",
            metadata={"mentor_id": mentor_id},
        )
        events = [build_status_event(
            application.id,
            previous_status,
            target,
            actor_id,
            now,
            assigned_mentor_id=mentor_id,
        )]
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        f"Mentor assigned: application_id={application_id}, mentor_id={mentor_id}, from={previous_status}"
    )
    publish_events(publisher, events)
    return application
