"""
Domain errors raised by the job application lifecycle engine.

Every error carries a machine-readable code, the HTTP status the API layer
maps it to, a human-readable message and a bounded details dict.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple


class PlacementError(Exception):
    """Base class for all placement workflow errors."""
    code = "placement_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_detail(self) -> Dict[str, Any]:
        """Structured error body used for HTTPException.detail."""
        return {"error": self.code, "message": self.message, **self.details}


class ValidationError(PlacementError):
    """Missing, oversized or malformed input. Raised before any I/O."""
    code = "validation_error"
    status_code = 400


class ApplicationNotFoundError(PlacementError):
    code = "application_not_found"
    status_code = 404

    def __init__(self, application_id: int):
        super().__init__(
            f"Application not found: {application_id}",
            {"application_id": application_id},
        )


class DuplicateApplicationError(PlacementError):
    """One or more (student, job) pairs already exist. The whole batch is aborted."""
    code = "duplicate_application"
    status_code = 409

    def __init__(
        self,
        pairs: Iterable[Tuple[str, Any]],
        sample_size: int = 10,
        message: Optional[str] = None,
    ):
        pairs = list(pairs)
        sample = [f"{student_id}/{job_key}" for student_id, job_key in pairs[:sample_size]]
        if message is None:
            message = f"Duplicate applications detected: {', '.join(sample)}"
        super().__init__(message, {"duplicates": sample, "duplicate_count": len(pairs)})
        self.pairs = pairs


class ReferenceNotFoundError(PlacementError):
    """Referenced catalog jobs are missing or not active."""
    code = "reference_not_found"
    status_code = 400

    def __init__(self, missing_job_ids: List[Any], sample_size: int = 10):
        sample = list(missing_job_ids)[:sample_size]
        super().__init__(
            f"Some jobs are missing or not active: {', '.join(str(j) for j in sample)}",
            {"missing_job_ids": sample, "missing_count": len(missing_job_ids)},
        )


class InvalidTransitionError(PlacementError):
    code = "invalid_transition"
    status_code = 400

    def __init__(self, from_status: Optional[str], to_status: str, message: Optional[str] = None):
        super().__init__(
            message or f"Invalid status transition: {from_status} -> {to_status}",
            {"from_status": from_status, "to_status": to_status},
        )


class HistoryIntegrityError(PlacementError):
    """Rollback cannot be derived from the history ledger."""
    code = "history_integrity"
    status_code = 409

    def __init__(self, application_id: int, message: str):
        super().__init__(message, {"application_id": application_id})
