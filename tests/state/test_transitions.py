"""Tests for the signal lifecycle transition table."""

import pytest

from signal_app.errors import StateTransitionError
from signal_app.state.models import SignalStatus
from signal_app.state.transitions import DELETED, SignalEvent, target_state


class TestTargetState:
    """Test legal and illegal lifecycle transitions."""

    @pytest.mark.parametrize("current,event,expected", [
        (None, SignalEvent.GRANT, "pending"),
        (SignalStatus.PENDING, SignalEvent.ACTIVATE, "active"),
        (SignalStatus.PENDING, SignalEvent.EXPIRE, DELETED),
        (SignalStatus.PENDING, SignalEvent.CLEAR, DELETED),
        (SignalStatus.ACTIVE, SignalEvent.CLAIM, "completed"),
        (SignalStatus.ACTIVE, SignalEvent.EXPIRE, DELETED),
    ])
    def test_legal_transitions(self, current, event, expected):
        assert target_state(current, event) == expected

    @pytest.mark.parametrize("current,event", [
        (SignalStatus.PENDING, SignalEvent.CLAIM),
        (SignalStatus.ACTIVE, SignalEvent.ACTIVATE),
        (SignalStatus.ACTIVE, SignalEvent.CLEAR),
        (SignalStatus.COMPLETED, SignalEvent.EXPIRE),
        (SignalStatus.COMPLETED, SignalEvent.CLAIM),
        (None, SignalEvent.ACTIVATE),
    ])
    def test_illegal_transitions(self, current, event):
        with pytest.raises(StateTransitionError) as exc_info:
            target_state(current, event)

        assert exc_info.value.attempted_transition == event.value

    def test_completed_is_terminal(self):
        """Test that no event leaves COMPLETED."""
        for event in SignalEvent:
            with pytest.raises(StateTransitionError):
                target_state(SignalStatus.COMPLETED, event)
