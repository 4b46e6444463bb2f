"""
Signal lifecycle data models.

Immutable records for users, signals and the status view reported to the
mini-app client.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..utils.time import to_epoch_ms


class SignalStatus(str, Enum):
    """Signal lifecycle states."""
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"

    @classmethod
    def non_terminal(cls) -> tuple["SignalStatus", ...]:
        return (cls.PENDING, cls.ACTIVE)


@dataclass(frozen=True)
class User:
    """The slice of a user record the signal engine reads and mutates."""
    id: int
    energy: int
    is_access_allowed: bool
    has_credential: bool
    last_request_at: Optional[datetime] = None
    chat_id: Optional[str] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class Signal:
    """A granted signal."""
    id: int
    user_id: int
    status: SignalStatus
    multiplier: float
    created_at: datetime
    activated_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        """Client-facing representation."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "status": self.status.value,
            "multiplier": self.multiplier,
            "created_at": self.created_at.isoformat(),
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
        }


@dataclass(frozen=True)
class SignalRequestStatus:
    """
    What the client should show for a user right now.

    Exactly one of three shapes is populated: waiting (``is_pending``),
    ready (``activated_at``) or idle (``can_request``/``cooldown_seconds``).
    """
    can_request: bool
    cooldown_seconds: Optional[int] = None
    is_pending: Optional[bool] = None
    request_time: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    confirm_timeout_seconds: Optional[int] = None
    signal_id: Optional[int] = None

    @property
    def state(self) -> str:
        if self.is_pending:
            return "waiting"
        if self.activated_at is not None:
            return "ready"
        return "idle"

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the field names and units the client polls for."""
        payload: dict[str, Any] = {"canRequest": self.can_request}
        if self.cooldown_seconds is not None:
            payload["cooldownSeconds"] = self.cooldown_seconds
        if self.is_pending is not None:
            payload["isPending"] = self.is_pending
        if self.request_time is not None:
            payload["requestTime"] = to_epoch_ms(self.request_time)
        if self.activated_at is not None:
            payload["activatedAt"] = to_epoch_ms(self.activated_at)
        if self.confirm_timeout_seconds is not None:
            payload["confirmTimeout"] = self.confirm_timeout_seconds * 1000
        if self.signal_id is not None:
            payload["signalId"] = self.signal_id
        return payload
