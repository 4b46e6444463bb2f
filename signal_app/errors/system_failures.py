"""
System failure error classifications.

Persistence and collaborator failures are raised at the component boundary;
the periodic jobs catch them per item and log instead of propagating.
"""

from typing import Optional, Dict, Any


class SystemFailureError(Exception):
    """Base class for system-level failures."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class StateTransitionError(SystemFailureError):
    """A signal mutation that the lifecycle table does not allow."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class PersistenceError(SystemFailureError):
    """Database failures."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target


class CollaboratorError(SystemFailureError):
    """An external collaborator (notifier, round source) failed."""

    def __init__(self, message: str, collaborator: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.collaborator = collaborator
        self.recoverable = True
