"""
Input checks shared by the creation and transition services.

Everything here runs before any database access and raises ValidationError.
"""
from typing import Any, Dict, Iterable, List, Optional

from placement_workflow.core.exceptions import ValidationError

# Student, actor and mentor IDs are stored in String(36) columns
ID_MAX_LENGTH = 36

# Maximum length per caller-supplied job field (matches column sizes)
JOB_FIELD_LIMITS: Dict[str, int] = {
    "object_id": 50,
    "external_job_id": 255,
    "job_link": 255,
    "job_type": 50,
    "job_title": 300,
    "company_name": 300,
    "location": 255,
    "normal_job_title": 300,
    "level": 20,
}


def require_id(value: Optional[Any], field_name: str) -> str:
    """
    Strip an external identifier and check it is present and fits its column.

    Raises:
        ValidationError: If the value is missing, blank or longer than ID_MAX_LENGTH
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field_name} is required", {"field": field_name})
    value = str(value).strip()
    if len(value) > ID_MAX_LENGTH:
        raise ValidationError(
            f"{field_name} exceeds {ID_MAX_LENGTH} characters",
            {"field": field_name, "max_length": ID_MAX_LENGTH},
        )
    return value


def unique_ids(values: Iterable[Any], field_name: str) -> List[str]:
    """Order-preserving de-duplication of stripped IDs. Blank or oversized entries are rejected."""
    seen = set()
    result = []
    for value in values or []:
        value = require_id(value, field_name)
        if value not in seen:
            seen.add(value)
            result.append(value)
    if not result:
        raise ValidationError(f"{field_name} must not be empty", {"field": field_name})
    return result


def check_job_field_lengths(values: Dict[str, Optional[str]], index: Optional[int] = None) -> None:
    """Reject any job field longer than its column."""
    for field_name, max_length in JOB_FIELD_LIMITS.items():
        value = values.get(field_name)
        if value is not None and len(value) > max_length:
            details = {"field": field_name, "max_length": max_length}
            where = ""
            if index is not None:
                details["index"] = index
                where = f" (job index {index})"
            raise ValidationError(f"{field_name} exceeds {max_length} characters{where}", details)
