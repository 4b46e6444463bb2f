"""
Main signal engine coordinator.

Wires the shared database, the stores, the notifier and the four services,
and drives admission and expiry from their tickers.
"""

import random
import threading
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from .config.defaults import AppConfig, get_default_config
from .config.settings import SignalSettings
from .notifications import BaseNotifier, create_notifier
from .persistence import (
    ClusterLock,
    Database,
    RoundStore,
    SettingStore,
    SignalStore,
    UserLedger,
)
from .scheduling import Ticker
from .services.activation import ActivationExecutor, ActivationWorker
from .services.admission import ADMISSION_LOCK_NAME, AdmissionScheduler
from .services.expiry import ExpiryReaper
from .services.redemption import RedemptionService
from .utils.time import utc_now

logger = structlog.get_logger(__name__)


class SignalEngine:
    """
    Coordinator for the signal admission, activation and redemption engine.

    Pipeline:
    Admission tick → PENDING → Activation workflow → ACTIVE → claim → COMPLETED
    Expiry tick deletes stale PENDING/ACTIVE signals.
    """

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        notifier: Optional[BaseNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Initialize the signal engine."""
        self.config = config or get_default_config()
        self.logger = logger
        self.stop_event = threading.Event()

        # Shared state
        self.database = Database(
            self.config.database.path,
            busy_timeout=self.config.database.busy_timeout_seconds,
        )
        self.user_ledger = UserLedger(self.database)
        self.signal_store = SignalStore(self.database)
        self.setting_store = SettingStore(self.database)
        self.round_store = RoundStore(self.database)
        self.settings = SignalSettings(self.setting_store)

        self.notifier = notifier or create_notifier(self.config.notifications)

        # Services
        self.activation_worker = ActivationWorker(
            self.signal_store,
            self.round_store,
            self.settings,
            self.notifier,
            params=self.config.activation,
            stop_event=self.stop_event,
            clock=clock,
            rng=rng,
        )
        self.activation_executor = ActivationExecutor(
            self.activation_worker,
            max_workers=self.config.activation.max_workers,
        )
        self.admission = AdmissionScheduler(
            self.user_ledger,
            self.signal_store,
            self.settings,
            ClusterLock(
                self.database,
                ADMISSION_LOCK_NAME,
                lease_seconds=self.config.scheduler.lock_lease_seconds,
                clock=clock,
            ),
            dispatch=self.activation_executor.submit,
            capacity=lambda: self.activation_executor.free_slots,
            timezone=self.config.scheduler.timezone,
            clock=clock,
            rng=rng,
        )
        self.reaper = ExpiryReaper(self.signal_store, self.settings, clock=clock)
        self.redemption = RedemptionService(
            self.user_ledger, self.signal_store, self.settings, clock=clock
        )

        # Timers
        self.tickers = [
            Ticker(
                "admission",
                self.config.scheduler.admission_interval_seconds,
                self.admission.run_cycle,
                stop_event=self.stop_event,
            ),
            Ticker(
                "expiry",
                self.config.scheduler.expiry_interval_seconds,
                self.reaper.run_once,
                stop_event=self.stop_event,
            ),
        ]

        self.logger.info("Signal engine initialized", db_path=self.config.database.path)

    def start(self) -> None:
        """Start the periodic jobs."""
        if not self.notifier.health_check():
            self.logger.warning(
                "Notifier unavailable, notifications will be dropped",
                notifier=self.notifier.name
            )

        for ticker in self.tickers:
            ticker.start()
        self.logger.info("Signal engine started")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop tickers and cancel in-flight activation waits."""
        self.stop_event.set()
        for ticker in self.tickers:
            ticker.stop(timeout)
        self.activation_executor.shutdown(wait=True)
        self.logger.info("Signal engine stopped")

    def get_stats(self) -> dict[str, Any]:
        """Engine-wide statistics."""
        return {
            "signals": self.signal_store.get_stats(),
            "notifier": self.notifier.get_stats(),
            "activations_in_flight": self.activation_executor.in_flight,
            "tickers": {ticker.name: ticker.tick_count for ticker in self.tickers},
        }
