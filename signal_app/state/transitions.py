"""
Signal lifecycle transition table.

Every mutation of a signal row names the event that caused it; the table
below is the single place that says which events are legal from which state.
"""

from enum import Enum
from typing import Optional

from ..errors import StateTransitionError
from .models import SignalStatus


class SignalEvent(str, Enum):
    """Events that move a signal through its lifecycle."""
    GRANT = "grant"
    ACTIVATE = "activate"
    CLAIM = "claim"
    CLEAR = "clear"
    EXPIRE = "expire"


# Sentinel target for row deletion
DELETED = "deleted"

TRANSITIONS: dict[tuple[Optional[SignalStatus], SignalEvent], str] = {
    (None, SignalEvent.GRANT): SignalStatus.PENDING.value,
    (SignalStatus.PENDING, SignalEvent.ACTIVATE): SignalStatus.ACTIVE.value,
    (SignalStatus.PENDING, SignalEvent.EXPIRE): DELETED,
    (SignalStatus.PENDING, SignalEvent.CLEAR): DELETED,
    (SignalStatus.ACTIVE, SignalEvent.CLAIM): SignalStatus.COMPLETED.value,
    (SignalStatus.ACTIVE, SignalEvent.EXPIRE): DELETED,
}


def target_state(current: Optional[SignalStatus], event: SignalEvent) -> str:
    """
    Resolve the state an event leads to.

    Raises:
        StateTransitionError: if the event is not allowed from ``current``
    """
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        current_name = current.value if current else "none"
        raise StateTransitionError(
            f"Event {event.value} is not allowed from state {current_name}",
            current_state=current_name,
            attempted_transition=event.value,
        ) from None
