"""
Status rollback derived from the history ledger.

Rollback replays history: the target is the previous status of the newest
history row, and the move is accepted only if the original forward edge
(target -> current) is legal. No backward edges exist in the transition table.
"""
import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy.orm import Session

from placement_workflow.core.status_transitions import can_transition
from placement_workflow.core.exceptions import InvalidTransitionError, HistoryIntegrityError
from placement_workflow.core.validation import require_id
from placement_workflow.db.models.job_application import JobApplication
from placement_workflow.services.application_service import get_application
from placement_workflow.services.audit_trail import apply_status_change, get_status_history
from placement_workflow.services.event_publisher import (
    EventPublisher,
    APPLICATION_STATUS_ROLLED_BACK_EVENT,
    build_status_event,
    publish_events,
)

logger = logging.getLogger(__name__)

ROLLBACK_REASON = "Status rolled back"


def rollback_status(
    db: Session,
    application_id: int,
    actor_id: str,
    mentor_id: Optional[str] = None,
    publisher: Optional[EventPublisher] = None,
) -> JobApplication:
    """
    Revert an application to the status it held before its latest transition.

    Args:
        db: Database session
        application_id: Application ID
        actor_id: Who requested the rollback
        mentor_id: None keeps the assigned mentor, an empty string clears it,
            any other value replaces it
        publisher: Event publisher notified after commit

    Returns:
        The updated application

    Raises:
        ApplicationNotFoundError: If the application does not exist
        HistoryIntegrityError: No history, creation-only history, or current status
            differs from the newest history row
        InvalidTransitionError: The historical forward move is not a legal edge
    """
    actor_id = require_id(actor_id, "actor_id")
    if mentor_id is not None:
        mentor_id = require_id(mentor_id, "mentor_id") if str(mentor_id).strip() else ""

    try:
        application = get_application(db, application_id, for_update=True)
        current_status = application.status

        history = get_status_history(db, application_id, newest_first=True)
        if not history:
            raise HistoryIntegrityError(application_id, f"No status history for application {application_id}")

        latest = history[0]
        if latest.new_status != current_status:
            logger.error(
                f"History diverged from current status: application_id={application_id}, "
                f"current={current_status}, latest_history={latest.new_status}"
            )
            raise HistoryIntegrityError(
                application_id,
                f"Current status {current_status} does not match latest history status {latest.new_status}",
            )

        target_status = latest.previous_status
        if target_status is None:
            raise HistoryIntegrityError(
                application_id,
                "Insufficient history: the application has no prior status to roll back to",
            )

        if not can_transition(target_status, current_status):
            logger.warning(
                f"Rollback rejected: application_id={application_id}, "
                f"historical move {target_status} -> {current_status} is not a legal edge"
            )
            raise InvalidTransitionError(
                current_status,
                target_status,
                message=f"Cannot roll back {current_status} to {target_status}: "
                        f"{target_status} -> {current_status} is not a legal forward transition",
            )

        now = datetime.now(timezone.utc)
        metadata = {"rolled_back_history_id": latest.id, "rolled_back_from": current_status}
        if mentor_id is not None:
            metadata["previous_mentor_id"] = application.assigned_mentor_id
            application.assigned_mentor_id = mentor_id or None
        apply_status_change(
            db,
            application,
            target_status,
            actor_id,
            reason=ROLLBACK_REASON,
            metadata=metadata,
        )
        events = [build_status_event(
            application.id,
            current_status,
            target_status,
            actor_id,
            now,
            event_type=APPLICATION_STATUS_ROLLED_BACK_EVENT,
            assigned_mentor_id=application.assigned_mentor_id,
            rollback_reason=ROLLBACK_REASON,
        )]
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Status rolled back: application_id={application_id}, from={current_status}, to={target_status}")
    publish_events(publisher, events)
    return application
