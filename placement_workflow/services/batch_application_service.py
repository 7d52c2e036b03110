"""
Batch application creation for the proxy and referral flows.

One application per (student, job) pair, all-or-nothing. Input is validated
before any I/O, duplicates are rejected with a single batched query, and the
applications plus their creation history rows are written in one transaction.
Events are published only after commit.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_workflow.core.config import MAX_BATCH_COMBINATIONS, DUPLICATE_SAMPLE_SIZE
from placement_workflow.core.application_types import (
    ApplicationType,
    get_initial_status,
    requires_service_entitlement,
)
from placement_workflow.core.exceptions import (
    ValidationError,
    DuplicateApplicationError,
    ReferenceNotFoundError,
)
from placement_workflow.core.validation import require_id, unique_ids, check_job_field_lengths
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.schemas.placement import ProxyJob
from placement_workflow.services.audit_trail import build_history_entry
from placement_workflow.services.duplicate_detector import (
    find_duplicate_pairs,
    JOB_KEY_JOB_ID,
    JOB_KEY_OBJECT_ID,
)
from placement_workflow.services.event_publisher import (
    EventPublisher,
    build_status_event,
    publish_events,
)
from placement_workflow.services.job_catalog import get_active_jobs, find_unavailable_job_ids

logger = logging.getLogger(__name__)

EntitlementValidator = Callable[[Session, List[str], ApplicationType], None]

PROXY_CREATION_REASON = "Proxy application created"
REFERRAL_CREATION_REASON = "Job recommended"


def _unique_job_ids(values: Iterable[Any]) -> List[int]:
    """Order-preserving de-duplication of catalog job IDs."""
    seen = set()
    result = []
    for value in values or []:
        if value is None:
            raise ValidationError("job_ids contains an empty value", {"field": "job_ids"})
        if value not in seen:
            seen.add(value)
            result.append(value)
    if not result:
        raise ValidationError("job_ids must not be empty", {"field": "job_ids"})
    return result


def _check_combinations(student_count: int, job_count: int) -> None:
    combinations = student_count * job_count
    if combinations > MAX_BATCH_COMBINATIONS:
        logger.warning(
            f"Batch rejected: combinations={combinations} exceeds max={MAX_BATCH_COMBINATIONS}"
        )
        raise ValidationError(
            f"Too many combinations ({combinations}). Maximum allowed: {MAX_BATCH_COMBINATIONS}",
            {"combinations": combinations, "max_combinations": MAX_BATCH_COMBINATIONS},
        )


def _coerce_proxy_job(job: Union[ProxyJob, Dict[str, Any]], index: int) -> ProxyJob:
    """Parse a proxy job and strip its object_id, the key duplicates are matched on."""
    if not isinstance(job, ProxyJob):
        try:
            job = ProxyJob(**job)
        except (PydanticValidationError, TypeError) as e:
            raise ValidationError(f"Invalid proxy job at index {index}", {"index": index, "reason": str(e)}) from e
    object_id = job.object_id.strip()
    if not object_id:
        raise ValidationError(f"object_id is required (job index {index})", {"field": "object_id", "index": index})
    return job.model_copy(update={"object_id": object_id})


def _normalize_proxy_jobs(jobs: Sequence[Union[ProxyJob, Dict[str, Any]]]) -> List[ProxyJob]:
    """Validate every job and collapse repeats of the same object_id (first wins)."""
    if not jobs:
        raise ValidationError("jobs must not be empty", {"field": "jobs"})
    unique_jobs: Dict[str, ProxyJob] = {}
    for index, raw_job in enumerate(jobs):
        job = _coerce_proxy_job(raw_job, index)
        check_job_field_lengths(job.model_dump(), index)
        if job.object_id not in unique_jobs:
            unique_jobs[job.object_id] = job
    return list(unique_jobs.values())


def _check_entitlement(
    db: Session,
    student_ids: List[str],
    application_type: ApplicationType,
    entitlement_validator: Optional[EntitlementValidator],
) -> None:
    if not requires_service_entitlement(application_type):
        return
    if entitlement_validator is None:
        logger.debug(f"No entitlement validator configured: application_type={application_type.value}")
        return
    entitlement_validator(db, student_ids, application_type)


def _raise_if_duplicates(duplicates: List[Tuple[str, Any]]) -> None:
    if duplicates:
        raise DuplicateApplicationError(duplicates, sample_size=DUPLICATE_SAMPLE_SIZE)


def _insert_batch(
    db: Session,
    applications: List[JobApplication],
    changed_by: str,
    reason: str,
    batch_timestamp: datetime,
    explain_conflict: Callable[[], None],
) -> List[Tuple[str, Dict[str, Any]]]:
    """
    Write applications and their creation history rows in one transaction.

    explain_conflict runs after a constraint violation has been rolled back and
    raises the domain error that matches it. Violations it cannot attribute
    propagate unchanged.

    Returns:
        Status-changed events for the created applications, ready to publish
    """
    try:
        db.add_all(applications)
        db.flush()

        history_rows = [
            build_history_entry(
                application_id=application.id,
                previous_status=None,
                new_status=application.status,
                changed_by=changed_by,
                reason=reason,
                metadata={
                    "application_type": application.application_type,
                    "batch_timestamp": batch_timestamp.isoformat(),
                },
            )
            for application in applications
        ]
        db.add_all(history_rows)

        events = [
            build_status_event(
                application_id=application.id,
                previous_status=None,
                new_status=application.status,
                changed_by=changed_by,
                changed_at=batch_timestamp,
            )
            for application in applications
        ]
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Batch insert hit a constraint: size={len(applications)}, error={e.orig}")
        explain_conflict()
        raise
    except Exception:
        db.rollback()
        raise

    return events


def create_proxy_batch(
    db: Session,
    student_ids: Sequence[str],
    jobs: Sequence[Union[ProxyJob, Dict[str, Any]]],
    created_by: str,
    publisher: Optional[EventPublisher] = None,
    entitlement_validator: Optional[EntitlementValidator] = None,
) -> List[JobApplication]:
    """
    Create one proxy application per (student, external job) pair.

    Args:
        db: Database session
        student_ids: Students to apply for
        jobs: External job payloads (ProxyJob or dicts with the same keys)
        created_by: Counselor creating the batch
        publisher: Event publisher notified after commit
        entitlement_validator: Optional service-entitlement check

    Returns:
        Created applications, all in status "submitted"

    Raises:
        ValidationError: Missing actor, empty input, oversized field, too many combinations
        DuplicateApplicationError: Any (student, object_id) pair already exists
    """
    created_by = require_id(created_by, "created_by")
    student_ids = unique_ids(student_ids, "student_ids")
    unique_jobs = _normalize_proxy_jobs(jobs)
    _check_combinations(len(student_ids), len(unique_jobs))

    application_type = ApplicationType.PROXY
    _check_entitlement(db, student_ids, application_type, entitlement_validator)

    object_ids = [job.object_id for job in unique_jobs]

    def detect() -> List[Tuple[str, Any]]:
        return find_duplicate_pairs(db, student_ids, object_ids, JOB_KEY_OBJECT_ID)

    _raise_if_duplicates(detect())

    now = datetime.now(timezone.utc)
    initial_status = get_initial_status(application_type).value
    applications = [
        JobApplication(
            student_id=student_id,
            object_id=job.object_id,
            external_job_id=job.external_job_id,
            job_link=job.job_link,
            job_type=job.job_type,
            job_title=job.job_title,
            company_name=job.company_name,
            location=job.location,
            job_categories=list(job.job_categories),
            normal_job_title=job.normal_job_title,
            level=job.level,
            application_type=application_type.value,
            status=initial_status,
            recommended_by=created_by,
            recommended_at=now,
            submitted_at=now,
        )
        for student_id in student_ids
        for job in unique_jobs
    ]

    events = _insert_batch(
        db, applications, created_by, PROXY_CREATION_REASON, now,
        lambda: _raise_if_duplicates(detect()),
    )
    logger.info(
        f"Proxy batch created: count={len(applications)}, students={len(student_ids)}, "
        f"jobs={len(unique_jobs)}, created_by={created_by}"
    )

    publish_events(publisher, events)
    return applications


def create_referral_batch(
    db: Session,
    student_ids: Sequence[str],
    job_ids: Sequence[int],
    recommended_by: str,
    publisher: Optional[EventPublisher] = None,
    entitlement_validator: Optional[EntitlementValidator] = None,
) -> List[JobApplication]:
    """
    Recommend catalog jobs to students, one referral application per pair.

    Every job must exist and be active; otherwise nothing is created.

    Raises:
        ValidationError: Missing actor, empty input, too many combinations
        ReferenceNotFoundError: A job is missing from the catalog or not active
        DuplicateApplicationError: Any (student, job) pair already exists
    """
    recommended_by = require_id(recommended_by, "recommended_by")
    student_ids = unique_ids(student_ids, "student_ids")
    job_ids = _unique_job_ids(job_ids)
    _check_combinations(len(student_ids), len(job_ids))

    def check_catalog(active_jobs=None) -> None:
        unavailable = find_unavailable_job_ids(db, job_ids, active_jobs)
        if unavailable:
            logger.warning(f"Referral batch rejected: unavailable jobs={unavailable[:DUPLICATE_SAMPLE_SIZE]}")
            raise ReferenceNotFoundError(unavailable, sample_size=DUPLICATE_SAMPLE_SIZE)

    active_jobs = get_active_jobs(db, job_ids)
    check_catalog(active_jobs)

    application_type = ApplicationType.REFERRAL
    _check_entitlement(db, student_ids, application_type, entitlement_validator)

    def detect() -> List[Tuple[str, Any]]:
        return find_duplicate_pairs(db, student_ids, job_ids, JOB_KEY_JOB_ID)

    _raise_if_duplicates(detect())

    def explain_conflict() -> None:
        # A pair inserted concurrently, or a posting removed since the catalog check
        _raise_if_duplicates(detect())
        check_catalog()

    now = datetime.now(timezone.utc)
    initial_status = get_initial_status(application_type).value
    applications = []
    for student_id in student_ids:
        for job_id in job_ids:
            job = active_jobs[job_id]
            applications.append(JobApplication(
                student_id=student_id,
                job_id=job.id,
                job_link=job.job_link,
                job_type=job.job_type,
                job_title=job.title,
                company_name=job.company_name,
                location=job.location,
                normal_job_title=job.normalized_job_title,
                level=job.level,
                application_type=application_type.value,
                status=initial_status,
                recommended_by=recommended_by,
                recommended_at=now,
            ))

    events = _insert_batch(db, applications, recommended_by, REFERRAL_CREATION_REASON, now, explain_conflict)
    logger.info(
        f"Referral batch created: count={len(applications)}, students={len(student_ids)}, "
        f"jobs={len(job_ids)}, recommended_by={recommended_by}"
    )

    publish_events(publisher, events)
    return applications
