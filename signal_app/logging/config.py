"""
Centralized logging configuration for the signal engine.

Every component logs through structlog configured here, so admission cycles,
activations, claims and expiry sweeps all share one structured format.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

from ..config.defaults import LoggingParams

# Third-party loggers that are too chatty at the application level
NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "urllib3": logging.WARNING,
}


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    quiet_loggers: Optional[dict[str, int]] = None
) -> None:
    """
    Configure structlog and the stdlib root logger for the whole process.

    Args:
        level: Logging level name, case-insensitive
        format_json: Render one JSON object per line instead of console output
        include_timestamp: Add an ISO-8601 UTC ``timestamp`` key
        include_caller: Add the calling file name and line number
        quiet_loggers: Per-logger level overrides, defaults to NOISY_LOGGERS
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(level=log_level, stream=sys.stdout, format="%(message)s")
    logging.getLogger().setLevel(log_level)
    for name, name_level in (quiet_loggers if quiet_loggers is not None else NOISY_LOGGERS).items():
        logging.getLogger(name).setLevel(name_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                        structlog.processors.CallsiteParameter.LINENO]
        ))

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_params(params: LoggingParams) -> None:
    """Apply the ``logging`` section of the application config."""
    configure_logging(level=params.level, format_json=params.format_json)


def get_logger(name: str) -> FilteringBoundLogger:
    """Get a configured structlog logger instance."""
    return structlog.get_logger(name)


def get_gating_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for analysis gate decisions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger carrying the gating subsystem context
    """
    return get_logger(name).bind(
        subsystem="gating",
        audit_trail=True
    )


def get_state_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound for signal lifecycle transitions.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger carrying the signal lifecycle context
    """
    return get_logger(name).bind(
        subsystem="signal_lifecycle",
        audit_trail=True
    )


def log_gate_decision(
    logger: FilteringBoundLogger,
    gate_name: str,
    passed: bool,
    signal_id: int,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log an analysis gate decision with standardized format.

    Args:
        logger: Structlog logger instance
        gate_name: Name of the gate being evaluated
        passed: Whether the gate passed or failed
        signal_id: Signal waiting on the gate
        reason: Detailed reason for the decision
        context: Additional context data
    """
    bound_logger = logger.bind(
        gate_name=gate_name,
        gate_result="PASS" if passed else "FAIL",
        signal_id=signal_id,
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if passed:
        bound_logger.info("Gate passed")
    else:
        bound_logger.debug("Gate not met")


def log_state_transition(
    logger: FilteringBoundLogger,
    signal_id: Optional[int],
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a signal state transition with standardized format.

    Args:
        logger: Structlog logger instance
        signal_id: ID of the signal transitioning
        from_state: Current state ("none" for creation)
        to_state: Target state ("deleted" for removal)
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        signal_id=signal_id,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    bound_logger.info("State transition")
