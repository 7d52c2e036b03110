"""
Audit trail for application status changes.

Every status change, including creation, writes exactly one history row in the
same transaction as the application write. Nothing here commits; the calling
command owns the transaction.
"""
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.db.models.application_history import ApplicationHistory


def build_history_entry(
    application_id: int,
    previous_status: Optional[str],
    new_status: str,
    changed_by: Optional[str],
    reason: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ApplicationHistory:
    return ApplicationHistory(
        application_id=application_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        change_reason=reason,
        change_metadata=metadata,
    )


def apply_status_change(
    db: Session,
    application: JobApplication,
    new_status: str,
    changed_by: str,
    reason: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> ApplicationHistory:
    """
    Set the application's status and append the matching history row.
    
    Args:
        db: Database session (transaction owned by the caller)
        application: Application row, loaded for update
        new_status: Status being entered
        changed_by: Actor ID
        reason: Free-text reason
        metadata: Structured context stored with the history row
        
    Returns:
        The pending history row
    """
    previous_status = application.status
    application.status = new_status
    entry = build_history_entry(
        application_id=application.id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        reason=reason,
        metadata=metadata,
    )
    db.add(entry)
    return entry


def get_status_history(db: Session, application_id: int, newest_first: bool = False) -> List[ApplicationHistory]:
    """Full ledger for one application. Ties on created_at are broken by insertion order."""
    query = db.query(ApplicationHistory).filter(ApplicationHistory.application_id == application_id)
    if newest_first:
        query = query.order_by(ApplicationHistory.created_at.desc(), ApplicationHistory.id.desc())
    else:
        query = query.order_by(ApplicationHistory.created_at.asc(), ApplicationHistory.id.asc())
    return query.all()
