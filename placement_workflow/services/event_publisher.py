"""
Post-commit domain event publication.

Events are published only after the owning transaction commits. Delivery is
at-least-once and fire-and-log: a failed publish is logged and never unwinds
the committed write, so consumers must be idempotent.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from placement_workflow.schemas.placement import StatusChangedEvent, ApplicationSubmittedEvent

logger = logging.getLogger(__name__)

APPLICATION_STATUS_CHANGED_EVENT = "placement.application.status_changed"
APPLICATION_STATUS_ROLLED_BACK_EVENT = "placement.application.status_rolled_back"
APPLICATION_SUBMITTED_EVENT = "placement.application.submitted"

EventHandler = Callable[[str, Dict[str, Any]], None]
Event = Tuple[str, Dict[str, Any]]


class EventPublisher:
    """In-process dispatcher from event type to subscribed handlers."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event_type: str, payload: Dict[str, Any]) -> None:
        """
        Deliver payload to every handler subscribed to event_type.
        
        A failing handler is logged and does not prevent delivery to the others.
        """
        handlers = self._handlers.get(event_type, [])
        if not handlers:
            logger.debug(f"No handlers for event_type={event_type}")
        for handler in handlers:
            try:
                handler(event_type, payload)
            except Exception:
                logger.exception(
                    f"Event handler failed: event_type={event_type}, "
                    f"application_id={payload.get('application_id')}, handler={getattr(handler, '__name__', handler)}"
                )


def publish_events(publisher: Optional[EventPublisher], events: Iterable[Event]) -> None:
    """Publish already-committed events, logging instead of raising on failure."""
    if publisher is None:
        return
    for event_type, payload in events:
        try:
            publisher.publish(event_type, payload)
        except Exception:
            logger.exception(
                f"Event publication failed after commit: event_type={event_type}, "
                f"application_id={payload.get('application_id')}"
            )


def log_event(event_type: str, payload: Dict[str, Any]) -> None:
    """Default handler: record every event in the application log."""
    logger.info(
        f"Event: {event_type} application_id={payload.get('application_id')} "
        f"{payload.get('previous_status')} -> {payload.get('new_status')}"
    )


def build_status_event(
    application_id: int,
    previous_status: Optional[str],
    new_status: str,
    changed_by: Optional[str],
    changed_at: datetime,
    event_type: str = APPLICATION_STATUS_CHANGED_EVENT,
    assigned_mentor_id: Optional[str] = None,
    rollback_reason: Optional[str] = None,
) -> Event:
    payload = StatusChangedEvent(
        application_id=application_id,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=changed_by,
        changed_at=changed_at,
        assigned_mentor_id=assigned_mentor_id,
        rollback_reason=rollback_reason,
    )
    return event_type, payload.model_dump(mode="json")


def build_submitted_event(application, completed_at: datetime) -> Event:
    """Billing consumes one unit per submitted application, credited to the provider."""
    provider_id = application.assigned_mentor_id or application.recommended_by or application.student_id
    payload = ApplicationSubmittedEvent(
        application_id=application.id,
        student_id=application.student_id,
        provider_id=provider_id,
        completed_at=completed_at,
        title=application.job_title,
    )
    return APPLICATION_SUBMITTED_EVENT, payload.model_dump(mode="json")


# Process-wide publisher used by the API layer
default_publisher = EventPublisher()
for _event_type in (
    APPLICATION_STATUS_CHANGED_EVENT,
    APPLICATION_STATUS_ROLLED_BACK_EVENT,
    APPLICATION_SUBMITTED_EVENT,
):
    default_publisher.subscribe(_event_type, log_event)
