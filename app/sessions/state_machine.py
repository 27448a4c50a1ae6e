"""Session status transitions.

    SCHEDULED --(consent: request + accept by the other party)--> COMPLETED
    SCHEDULED --(direct update by an editing clinician)---------> CANCELLED

COMPLETED and CANCELLED are terminal. The consent sub-protocols are tracked by
the *_requested_by / *_accepted_by fields and run independently of status.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from app.core.exceptions import InvalidTransitionException
from app.sessions.models import SessionStatus


class Trigger(str, Enum):
    CONSENT = "consent"
    DIRECT_UPDATE = "direct_update"


TRANSITIONS: Dict[SessionStatus, Dict[SessionStatus, FrozenSet[Trigger]]] = {
    SessionStatus.SCHEDULED: {
        SessionStatus.COMPLETED: frozenset({Trigger.CONSENT}),
        SessionStatus.CANCELLED: frozenset({Trigger.DIRECT_UPDATE}),
    },
    SessionStatus.COMPLETED: {},
    SessionStatus.CANCELLED: {},
}


def as_status(value) -> SessionStatus:
    return value if isinstance(value, SessionStatus) else SessionStatus(value)


def allowed_transitions(current, trigger: Optional[Trigger] = None) -> List[SessionStatus]:
    """Next statuses reachable from ``current``, optionally only via ``trigger``"""
    edges = TRANSITIONS[as_status(current)]
    return [
        target for target, triggers in edges.items()
        if trigger is None or trigger in triggers
    ]


def is_terminal(status) -> bool:
    return not TRANSITIONS[as_status(status)]


def assert_transition(current, target, trigger: Trigger) -> None:
    """Raise InvalidTransitionException unless ``current -> target`` is allowed via ``trigger``"""
    current = as_status(current)
    target = as_status(target)
    if trigger in TRANSITIONS[current].get(target, frozenset()):
        return

    allowed = [s.value for s in allowed_transitions(current, trigger)]
    if target == SessionStatus.COMPLETED and SessionStatus.COMPLETED in allowed_transitions(current):
        message = "A session can only be completed by mutual agreement (request-complete, then accept-complete)"
    else:
        message = f"Invalid status transition from {current.value} to {target.value}"
    raise InvalidTransitionException(message, current.value, allowed)


def assert_scheduled(current, action: str) -> None:
    """Consent and rescheduling actions only apply to a session that is still SCHEDULED"""
    current = as_status(current)
    if current != SessionStatus.SCHEDULED:
        raise InvalidTransitionException(
            f"Cannot {action}: session is {current.value}",
            current.value,
            [s.value for s in allowed_transitions(current)],
        )
