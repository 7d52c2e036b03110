"""
Placement workflow endpoints.

Thin adapter over the lifecycle services. The caller is already authenticated
upstream; its identity arrives in the X-Actor-Id header.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Header, status, Query
from sqlalchemy.orm import Session

from placement_workflow.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from placement_workflow.core.exceptions import PlacementError
from placement_workflow.core.validation import require_id
from placement_workflow.db.session import SessionLocal
from placement_workflow.schemas.placement import (
    ProxyBatchRequest,
    ReferralBatchRequest,
    SubmitApplicationRequest,
    ManualApplicationRequest,
    StatusUpdateRequest,
    MentorAssignmentRequest,
    RollbackRequest,
    ApplicationResponse,
    BatchApplicationResponse,
    ApplicationListResponse,
    HistoryEntryResponse,
    HistoryListResponse,
)
from placement_workflow.services import application_service
from placement_workflow.services.batch_application_service import create_proxy_batch, create_referral_batch
from placement_workflow.services.status_service import update_status, assign_mentor
from placement_workflow.services.rollback_service import rollback_status
from placement_workflow.services.event_publisher import EventPublisher, default_publisher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/placement", tags=["Placement"])


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_actor_id(x_actor_id: Optional[str] = Header(None)) -> str:
    """Caller identity resolved by the upstream auth layer."""
    if not x_actor_id or not x_actor_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Actor-Id header"
        )
    try:
        return require_id(x_actor_id, "X-Actor-Id")
    except PlacementError as e:
        raise_http_error(e)


def get_event_publisher() -> EventPublisher:
    return default_publisher


def raise_http_error(e: PlacementError):
    """Translate a domain error into an HTTPException with a structured detail."""
    raise HTTPException(status_code=e.status_code, detail=e.to_detail()) from e


@router.post("/proxy-applications/batch", status_code=status.HTTP_201_CREATED, response_model=BatchApplicationResponse)
def create_proxy_applications(
    request: ProxyBatchRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    """
    Create proxy applications for every student x job pair.

    All-or-nothing: any duplicate pair aborts the whole batch.
    """
    try:
        applications = create_proxy_batch(
            db,
            student_ids=request.student_ids,
            jobs=request.jobs,
            created_by=actor_id,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return BatchApplicationResponse(
        items=[ApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )


@router.post("/referral-applications/batch", status_code=status.HTTP_201_CREATED, response_model=BatchApplicationResponse)
def create_referral_applications(
    request: ReferralBatchRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    """Recommend active catalog jobs to students, one referral per pair."""
    try:
        applications = create_referral_batch(
            db,
            student_ids=request.student_ids,
            job_ids=request.job_ids,
            recommended_by=actor_id,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return BatchApplicationResponse(
        items=[ApplicationResponse.model_validate(a) for a in applications],
        total=len(applications),
    )


@router.post("/job-applications", status_code=status.HTTP_201_CREATED, response_model=ApplicationResponse)
def submit_job_application(
    request: SubmitApplicationRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    try:
        application = application_service.submit_application(
            db,
            student_id=request.student_id,
            job_id=request.job_id,
            application_type=request.application_type,
            actor_id=actor_id,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return application


@router.post("/referrals/manual", status_code=status.HTTP_201_CREATED, response_model=ApplicationResponse)
def create_manual_referral(
    request: ManualApplicationRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    """Record a referral arranged outside the system, already assigned to a mentor."""
    try:
        application = application_service.create_manual_application(
            db,
            student_id=request.student_id,
            mentor_id=request.mentor_id,
            actor_id=actor_id,
            job_id=request.job_id,
            job_link=request.job_link,
            external_job_id=request.external_job_id,
            job_title=request.job_title,
            company_name=request.company_name,
            location=request.location,
            job_type=request.job_type,
            job_categories=request.job_categories,
            normal_job_title=request.normal_job_title,
            level=request.level,
            submitted_at=request.submitted_at,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return application


@router.patch("/referrals/{application_id}/mentor", response_model=ApplicationResponse)
def assign_referral_mentor(
    application_id: int,
    request: MentorAssignmentRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    """Assign a mentor to a referral application (moves it to mentor_assigned)."""
    try:
        application = assign_mentor(
            db,
            application_id,
            mentor_id=request.mentor_id,
            actor_id=actor_id,
            reason=request.reason,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return application


@router.patch("/job-applications/{application_id}/status", response_model=ApplicationResponse)
def update_application_status(
    application_id: int,
    request: StatusUpdateRequest,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    try:
        application = update_status(
            db,
            application_id,
            target_status=request.status,
            actor_id=actor_id,
            reason=request.reason,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return application


@router.patch("/job-applications/{application_id}/rollback", response_model=ApplicationResponse)
def rollback_application_status(
    application_id: int,
    request: Optional[RollbackRequest] = None,
    actor_id: str = Depends(get_actor_id),
    publisher: EventPublisher = Depends(get_event_publisher),
    db: Session = Depends(get_db)
):
    """
    Revert the latest status change using the history ledger.

    An optional body may replace the assigned mentor (or clear it with an empty string).
    """
    try:
        application = rollback_status(
            db,
            application_id,
            actor_id=actor_id,
            mentor_id=request.mentor_id if request else None,
            publisher=publisher,
        )
    except PlacementError as e:
        raise_http_error(e)

    return application


@router.get("/job-applications/{application_id}", response_model=ApplicationResponse)
def get_job_application(
    application_id: int,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    try:
        return application_service.get_application(db, application_id)
    except PlacementError as e:
        raise_http_error(e)


@router.get("/job-applications/{application_id}/history", response_model=HistoryListResponse)
def get_job_application_history(
    application_id: int,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    """Status history for one application, oldest first."""
    try:
        entries = application_service.get_status_history(db, application_id)
    except PlacementError as e:
        raise_http_error(e)

    return HistoryListResponse(
        entries=[HistoryEntryResponse.model_validate(entry) for entry in entries],
        total=len(entries),
    )


@router.get("/job-applications", response_model=ApplicationListResponse)
def list_job_applications(
    student_id: Optional[str] = Query(None, description="Filter by student"),
    job_id: Optional[int] = Query(None, description="Filter by catalog job"),
    application_status: Optional[str] = Query(None, alias="status", description="Filter by status"),
    application_type: Optional[str] = Query(None, description="Filter by application type"),
    assigned_mentor_id: Optional[str] = Query(None, description="Filter by mentor"),
    recommended_by: Optional[str] = Query(None, description="Filter by recommender/creator"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE, description="Items per page"),
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db)
):
    try:
        items, total = application_service.search_applications(
            db,
            student_id=student_id,
            job_id=job_id,
            status=application_status,
            application_type=application_type,
            assigned_mentor_id=assigned_mentor_id,
            recommended_by=recommended_by,
            page=page,
            page_size=page_size,
        )
    except PlacementError as e:
        raise_http_error(e)

    return ApplicationListResponse(
        items=[ApplicationResponse.model_validate(a) for a in items],
        total=total,
        page=page,
        page_size=page_size,
    )
