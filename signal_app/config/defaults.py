"""Default application parameters for the signal engine process."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DatabaseParams:
    """Shared SQLite database parameters."""
    path: str = "signals.db"
    busy_timeout_seconds: float = 30.0              # Wait for a competing writer


@dataclass(frozen=True)
class SchedulerParams:
    """Periodic job parameters."""
    admission_interval_seconds: float = 60.0        # Admission cycle tick
    expiry_interval_seconds: float = 10.0           # Expiry sweep tick
    timezone: str = "Europe/Moscow"                 # Reference zone for request ranges
    lock_lease_seconds: float = 300.0               # Cluster lock takeover after crash


@dataclass(frozen=True)
class ActivationParams:
    """Activation workflow parameters."""
    poll_interval_seconds: float = 5.0              # Analysis gate re-check period
    max_wait_seconds: float = 300.0                 # Gate ceiling before fail-open
    max_workers: int = 64                           # Concurrent activations per process


@dataclass(frozen=True)
class NotificationParams:
    """Out-of-band notification parameters."""
    telegram_bot_token: Optional[str] = None
    telegram_api_url: str = "https://api.telegram.org"
    timeout_seconds: int = 10


@dataclass(frozen=True)
class ApiParams:
    """HTTP API parameters."""
    host: str = "0.0.0.0"
    port: int = 5000
    status_cache_seconds: int = 3


@dataclass(frozen=True)
class LoggingParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    database: DatabaseParams
    scheduler: SchedulerParams
    activation: ActivationParams
    notifications: NotificationParams
    api: ApiParams
    logging: LoggingParams


def get_default_config() -> AppConfig:
    """Get the default configuration instance."""
    return AppConfig(
        database=DatabaseParams(),
        scheduler=SchedulerParams(),
        activation=ActivationParams(),
        notifications=NotificationParams(),
        api=ApiParams(),
        logging=LoggingParams(),
    )
