"""
User-visible rejections raised by the redemption path.

These exceptions are surfaced synchronously to the caller of claim/status
so the client can either refresh its state or prompt for more energy.
"""

from typing import Optional, Dict, Any


class RedemptionError(Exception):
    """Base class for rejections returned to the requesting user."""

    code = "redemption_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class UserNotFoundError(RedemptionError):
    """The requesting user does not exist."""

    code = "user_not_found"

    def __init__(self, user_id: int, **kwargs):
        super().__init__(f"User with ID {user_id} not found", **kwargs)
        self.user_id = user_id


class SignalNotFoundError(RedemptionError):
    """No ACTIVE signal matches the claim (wrong owner, expired, already used)."""

    code = "signal_not_found"

    def __init__(self, signal_id: int, user_id: Optional[int] = None, **kwargs):
        super().__init__(
            f"Signal with ID {signal_id} not found or not accessible", **kwargs
        )
        self.signal_id = signal_id
        self.user_id = user_id


class InsufficientEnergyError(RedemptionError):
    """The user has no energy left to spend on a claim."""

    code = "insufficient_energy"

    def __init__(self, user_id: int, energy: Optional[int] = None, **kwargs):
        super().__init__(f"Insufficient energy for user {user_id}", **kwargs)
        self.user_id = user_id
        self.energy = energy
