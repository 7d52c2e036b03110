"""
Application status state machine.

Single source of truth for the legal status graph. Every status has an entry;
an empty list marks a terminal status. Rollback never adds backward edges here.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Set


class ApplicationStatus(str, Enum):
    RECOMMENDED = "recommended"
    INTERESTED = "interested"
    NOT_INTERESTED = "not_interested"
    REVOKED = "revoked"
    MENTOR_ASSIGNED = "mentor_assigned"
    SUBMITTED = "submitted"
    INTERVIEWED = "interviewed"
    GOT_OFFER = "got_offer"
    REJECTED = "rejected"


ALLOWED_STATUS_TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    ApplicationStatus.RECOMMENDED: frozenset({
        ApplicationStatus.INTERESTED,
        ApplicationStatus.NOT_INTERESTED,
        ApplicationStatus.REVOKED,
    }),
    ApplicationStatus.INTERESTED: frozenset({
        ApplicationStatus.MENTOR_ASSIGNED,
        ApplicationStatus.REVOKED,
    }),
    ApplicationStatus.MENTOR_ASSIGNED: frozenset({
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.REVOKED,
    }),
    ApplicationStatus.SUBMITTED: frozenset({
        ApplicationStatus.INTERVIEWED,
        ApplicationStatus.REJECTED,
    }),
    ApplicationStatus.INTERVIEWED: frozenset({
        ApplicationStatus.GOT_OFFER,
        ApplicationStatus.REJECTED,
    }),
    # Terminal. Re-recommending after not_interested is pending product confirmation.
    ApplicationStatus.NOT_INTERESTED: frozenset(),
    ApplicationStatus.REVOKED: frozenset(),
    ApplicationStatus.GOT_OFFER: frozenset(),
    ApplicationStatus.REJECTED: frozenset(),
}

# Fail at import time rather than silently accepting an unknown source status
_missing = set(ApplicationStatus) - set(ALLOWED_STATUS_TRANSITIONS)
if _missing:
    raise RuntimeError(f"Statuses without a transition entry: {sorted(s.value for s in _missing)}")


def parse_status(value) -> ApplicationStatus:
    """
    Convert a raw value into an ApplicationStatus.
    
    Raises:
        ValueError: If value is not a known status
    """
    if isinstance(value, ApplicationStatus):
        return value
    return ApplicationStatus(str(value).strip().lower())


def can_transition(from_status, to_status) -> bool:
    """Check whether moving from from_status to to_status is a legal edge."""
    try:
        source = parse_status(from_status)
        target = parse_status(to_status)
    except ValueError:
        return False
    return target in ALLOWED_STATUS_TRANSITIONS[source]


def get_allowed_transitions(status) -> List[ApplicationStatus]:
    """Get the legal targets for a status, in declaration order."""
    allowed = ALLOWED_STATUS_TRANSITIONS[parse_status(status)]
    return [s for s in ApplicationStatus if s in allowed]


def is_terminal(status) -> bool:
    return not ALLOWED_STATUS_TRANSITIONS[parse_status(status)]


def reachable_statuses(start=ApplicationStatus.RECOMMENDED) -> Set[ApplicationStatus]:
    """All statuses reachable from start (start included)."""
    start = parse_status(start)
    seen = {start}
    pending = [start]
    while pending:
        current = pending.pop()
        for target in ALLOWED_STATUS_TRANSITIONS[current]:
            if target not in seen:
                seen.add(target)
                pending.append(target)
    return seen
