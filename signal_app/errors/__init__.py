"""
Error classification for the signal engine.

Redemption errors are user-visible rejections; system failures are logged
and isolated by the periodic jobs.
"""

from .redemption import (
    RedemptionError,
    UserNotFoundError,
    SignalNotFoundError,
    InsufficientEnergyError,
)
from .system_failures import (
    SystemFailureError,
    StateTransitionError,
    PersistenceError,
    CollaboratorError,
)

__all__ = [
    # Redemption rejections
    "RedemptionError",
    "UserNotFoundError",
    "SignalNotFoundError",
    "InsufficientEnergyError",
    # System failures
    "SystemFailureError",
    "StateTransitionError",
    "PersistenceError",
    "CollaboratorError",
]
