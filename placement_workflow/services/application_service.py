"""
Single-application creation and read operations.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from placement_workflow.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, DUPLICATE_SAMPLE_SIZE
from placement_workflow.core.application_types import (
    ApplicationType,
    parse_application_type,
    get_initial_status,
    requires_service_entitlement,
)
from placement_workflow.core.status_transitions import ApplicationStatus, parse_status
from placement_workflow.core.exceptions import (
    ValidationError,
    ApplicationNotFoundError,
    DuplicateApplicationError,
    ReferenceNotFoundError,
)
from placement_workflow.core.validation import require_id, check_job_field_lengths
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.db.models.application_history import ApplicationHistory
from placement_workflow.services import audit_trail
from placement_workflow.services.duplicate_detector import find_duplicate_pairs, JOB_KEY_JOB_ID, JOB_KEY_JOB_LINK
from placement_workflow.services.event_publisher import (
    Event,
    EventPublisher,
    build_status_event,
    build_submitted_event,
    publish_events,
)
from placement_workflow.services.job_catalog import get_active_jobs

logger = logging.getLogger(__name__)

MANUAL_CREATION_REASON = "Manual creation by counselor"


def get_application(db: Session, application_id: int, for_update: bool = False) -> JobApplication:
    """
    Load one application.

    Args:
        db: Database session
        application_id: Application ID
        for_update: Lock the row for the rest of the transaction

    Raises:
        ApplicationNotFoundError: If no application has this ID
    """
    query = db.query(JobApplication).filter(JobApplication.id == application_id)
    if for_update:
        query = query.with_for_update()
    application = query.first()
    if not application:
        raise ApplicationNotFoundError(application_id)
    return application


def get_status_history(db: Session, application_id: int) -> List[ApplicationHistory]:
    """History ledger for an existing application, oldest first."""
    get_application(db, application_id)
    return audit_trail.get_status_history(db, application_id)


def search_applications(
    db: Session,
    student_id: Optional[str] = None,
    job_id: Optional[int] = None,
    status: Optional[str] = None,
    application_type: Optional[str] = None,
    assigned_mentor_id: Optional[str] = None,
    recommended_by: Optional[str] = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Tuple[List[JobApplication], int]:
    """
    Filtered, paginated listing, newest first.

    Returns:
        Tuple of (applications on this page, total matching count)
    """
    query = db.query(JobApplication)

    if student_id:
        query = query.filter(JobApplication.student_id == student_id)
    if job_id is not None:
        query = query.filter(JobApplication.job_id == job_id)
    if status:
        try:
            status = parse_status(status).value
        except ValueError:
            raise ValidationError(f"Unknown status: {status}", {"field": "status"})
        query = query.filter(JobApplication.status == status)
    if application_type:
        try:
            application_type = parse_application_type(application_type).value
        except ValueError:
            raise ValidationError(f"Unknown application type: {application_type}", {"field": "application_type"})
        query = query.filter(JobApplication.application_type == application_type)
    if assigned_mentor_id:
        query = query.filter(JobApplication.assigned_mentor_id == assigned_mentor_id)
    if recommended_by:
        query = query.filter(JobApplication.recommended_by == recommended_by)

    page = max(page, 1)
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)

    total = query.count()
    items = (
        query.order_by(JobApplication.created_at.desc(), JobApplication.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def _check_catalog_job(db: Session, job_id: int):
    job = get_active_jobs(db, [job_id]).get(job_id)
    if job is None:
        raise ReferenceNotFoundError([job_id])
    return job


def _raise_if_duplicates(db: Session, student_id: str, job_key, key_kind: str) -> None:
    duplicates = find_duplicate_pairs(db, [student_id], [job_key], key_kind)
    if duplicates:
        raise DuplicateApplicationError(duplicates, sample_size=DUPLICATE_SAMPLE_SIZE)


def _insert_with_history(
    db: Session,
    application: JobApplication,
    changed_by: str,
    reason: str,
    metadata: Dict[str, Any],
    build_events: Callable[[JobApplication], List[Event]],
    explain_conflict: Callable[[], None],
) -> List[Event]:
    """
    Write one application and its creation history row in one transaction.

    explain_conflict runs after a constraint violation has been rolled back and
    raises the matching domain error; anything it cannot attribute propagates.
    """
    try:
        db.add(application)
        db.flush()
        db.add(audit_trail.build_history_entry(
            application_id=application.id,
            previous_status=None,
            new_status=application.status,
            changed_by=changed_by,
            reason=reason,
            metadata=metadata,
        ))
        events = build_events(application)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(
            f"Application insert hit a constraint: student_id={application.student_id}, error={e.orig}"
        )
        explain_conflict()
        raise
    except Exception:
        db.rollback()
        raise
    return events


def submit_application(
    db: Session,
    student_id: str,
    job_id: int,
    application_type: str,
    actor_id: str,
    publisher: Optional[EventPublisher] = None,
    entitlement_validator=None,
) -> JobApplication:
    """
    Create one catalog-backed application.

    Args:
        db: Database session
        student_id: Student the application belongs to
        job_id: Active catalog job posting ID
        application_type: "direct", "referral" or "bd"
        actor_id: Who is creating it
        publisher: Event publisher notified after commit
        entitlement_validator: Optional service-entitlement check for bd

    Returns:
        The created application

    Raises:
        ValidationError: Missing actor/student, unknown or proxy type
        ReferenceNotFoundError: Job missing or not active
        DuplicateApplicationError: The student already has an application for this job
    """
    actor_id = require_id(actor_id, "actor_id")
    student_id = require_id(student_id, "student_id")
    try:
        app_type = parse_application_type(application_type)
    except ValueError:
        raise ValidationError(f"Unknown application type: {application_type}", {"field": "application_type"})
    if app_type == ApplicationType.PROXY:
        raise ValidationError(
            "Proxy applications carry an inline job and must be created through the proxy batch",
            {"field": "application_type"},
        )

    job = _check_catalog_job(db, job_id)

    if requires_service_entitlement(app_type) and entitlement_validator is not None:
        entitlement_validator(db, [student_id], app_type)

    _raise_if_duplicates(db, student_id, job_id, JOB_KEY_JOB_ID)

    now = datetime.now(timezone.utc)
    initial_status = get_initial_status(app_type)
    application = JobApplication(
        student_id=student_id,
        job_id=job.id,
        job_link=job.job_link,
        job_type=job.job_type,
        job_title=job.title,
        company_name=job.company_name,
        location=job.location,
        normal_job_title=job.normalized_job_title,
        level=job.level,
        application_type=app_type.value,
        status=initial_status.value,
        recommended_by=actor_id,
        recommended_at=now,
        submitted_at=now if initial_status == ApplicationStatus.SUBMITTED else None,
    )

    def build_events(created: JobApplication) -> List[Event]:
        events = [build_status_event(created.id, None, created.status, actor_id, now)]
        if initial_status == ApplicationStatus.SUBMITTED:
            events.append(build_submitted_event(created, now))
        return events

    def explain_conflict() -> None:
        _raise_if_duplicates(db, student_id, job_id, JOB_KEY_JOB_ID)
        _check_catalog_job(db, job_id)

    events = _insert_with_history(
        db, application, actor_id, "Application created",
        {"application_type": app_type.value}, build_events, explain_conflict,
    )

    logger.info(
        f"Application created: application_id={application.id}, type={app_type.value}, "
        f"status={application.status}, student_id={student_id}, job_id={job_id}"
    )
    publish_events(publisher, events)
    return application


def create_manual_application(
    db: Session,
    student_id: str,
    mentor_id: str,
    actor_id: str,
    job_id: Optional[int] = None,
    job_link: Optional[str] = None,
    external_job_id: Optional[str] = None,
    job_title: Optional[str] = None,
    company_name: Optional[str] = None,
    location: Optional[str] = None,
    job_type: Optional[str] = None,
    job_categories: Optional[List[str]] = None,
    normal_job_title: Optional[str] = None,
    level: Optional[str] = None,
    submitted_at: Optional[datetime] = None,
    publisher: Optional[EventPublisher] = None,
) -> JobApplication:
    """
    Record a referral a counselor arranged outside the system.

    The application is created directly in mentor_assigned with the mentor set.
    A catalog job_id is checked against the catalog and matched for duplicates
    on (student, job_id); without one, duplicates are matched on (student, job_link).
    Inline job fields take precedence over the catalog's.

    Raises:
        ValidationError: Missing student/mentor/actor, no job_id or job_link, oversized field
        ReferenceNotFoundError: job_id is not an active catalog posting
        DuplicateApplicationError: The student already has an application for this job
    """
    actor_id = require_id(actor_id, "actor_id")
    student_id = require_id(student_id, "student_id")
    mentor_id = require_id(mentor_id, "mentor_id")
    job_link = job_link.strip() if job_link and job_link.strip() else None
    if job_id is None and job_link is None:
        raise ValidationError("Either job_id or job_link is required", {"field": "job_id"})
    check_job_field_lengths({
        "job_link": job_link,
        "external_job_id": external_job_id,
        "job_title": job_title,
        "company_name": company_name,
        "location": location,
        "job_type": job_type,
        "normal_job_title": normal_job_title,
        "level": level,
    })

    if job_id is not None:
        job = _check_catalog_job(db, job_id)
        job_link = job_link or job.job_link
        job_title = job_title or job.title
        company_name = company_name or job.company_name
        location = location or job.location
        job_type = job_type or job.job_type
        normal_job_title = normal_job_title or job.normalized_job_title
        level = level or job.level
        job_key, key_kind = job_id, JOB_KEY_JOB_ID
    else:
        job_key, key_kind = job_link, JOB_KEY_JOB_LINK

    _raise_if_duplicates(db, student_id, job_key, key_kind)

    now = datetime.now(timezone.utc)
    status = ApplicationStatus.MENTOR_ASSIGNED.value
    application = JobApplication(
        student_id=student_id,
        job_id=job_id,
        external_job_id=external_job_id,
        job_link=job_link,
        job_type=job_type,
        job_title=job_title,
        company_name=company_name,
        location=location,
        job_categories=list(job_categories or []),
        normal_job_title=normal_job_title,
        level=level,
        application_type=ApplicationType.REFERRAL.value,
        status=status,
        assigned_mentor_id=mentor_id,
        recommended_by=actor_id,
        recommended_at=now,
        submitted_at=submitted_at,
    )

    def build_events(created: JobApplication) -> List[Event]:
        return [build_status_event(created.id, None, status, actor_id, now, assigned_mentor_id=mentor_id)]

    def explain_conflict() -> None:
        _raise_if_duplicates(db, student_id, job_key, key_kind)
        if job_id is not None:
            _check_catalog_job(db, job_id)

    events = _insert_with_history(
        db, application, actor_id, MANUAL_CREATION_REASON,
        {"application_type": ApplicationType.REFERRAL.value, "mentor_id": mentor_id, "manual": True},
        build_events, explain_conflict,
    )

    logger.info(
        f"Manual application created: application_id={application.id}, student_id={student_id}, "
        f"mentor_id={mentor_id}, job_key={job_key}"
    )
    publish_events(publisher, events)
    return application
