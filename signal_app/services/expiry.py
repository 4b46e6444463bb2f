"""Expiry sweep: deletes signals that overstayed their window."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

import structlog

from ..config.settings import SignalSettings
from ..persistence.signal_store import SignalStore
from ..state.models import SignalStatus
from ..utils.time import utc_now

logger = structlog.get_logger(__name__)


@dataclass
class ExpiryReport:
    expired_active: int = 0
    expired_pending: int = 0
    failed: int = 0


class ExpiryReaper:
    """
    Removes unclaimed ACTIVE signals after the confirm timeout and stuck
    PENDING signals after their maximum age. Deleting a signal returns its
    owner to idle.
    """

    def __init__(
        self,
        signal_store: SignalStore,
        settings: SignalSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.signal_store = signal_store
        self.settings = settings
        self.clock = clock
        self.logger = logger

    def run_once(self, now: Optional[datetime] = None) -> ExpiryReport:
        now = now or self.clock()
        report = ExpiryReport()

        try:
            cutoff = now - timedelta(seconds=self.settings.confirm_timeout_seconds())
            report.expired_active = self.signal_store.delete_expired(SignalStatus.ACTIVE, cutoff)
        except Exception as e:
            report.failed += 1
            self.logger.error("Error expiring active signals", error=str(e))

        try:
            cutoff = now - timedelta(seconds=self.settings.pending_max_age_seconds())
            report.expired_pending = self.signal_store.delete_expired(SignalStatus.PENDING, cutoff)
        except Exception as e:
            report.failed += 1
            self.logger.error("Error expiring pending signals", error=str(e))

        if report.expired_active or report.expired_pending:
            self.logger.info(
                "Expired signals removed",
                active=report.expired_active,
                pending=report.expired_pending
            )
        return report
