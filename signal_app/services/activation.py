"""
Activation workflow: turns a PENDING signal into an ACTIVE one.

Each granted signal gets one workflow. It tells the user about the grant,
waits (bounded) for the analysis gate over recent rounds, announces the
signal, waits the pacing delay, draws a multiplier and commits the
activation if the signal still exists.
"""

import random
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from ..config.defaults import ActivationParams
from ..config.settings import SignalSettings
from ..logging.config import get_gating_logger, log_gate_decision
from ..notifications.base import BaseNotifier, Messages
from ..persistence.signal_store import SignalStore
from ..state.models import Signal, SignalStatus
from ..utils.time import utc_now

logger = structlog.get_logger(__name__)
gating_logger = get_gating_logger(__name__)


class ActivationOutcome(Enum):
    ACTIVATED = "activated"
    ABANDONED = "abandoned"      # Signal deleted or no longer pending
    CANCELLED = "cancelled"      # Process shutting down


@dataclass(frozen=True)
class ActivationResult:
    outcome: ActivationOutcome
    signal_id: int
    multiplier: Optional[float] = None
    gate_met: bool = False


def in_band(values: list[float], low: float, high: float) -> list[float]:
    """Values inside the inclusive band."""
    return [value for value in values if low <= value <= high]


class ActivationWorker:
    """Runs the activation workflow for one signal at a time."""

    def __init__(
        self,
        signal_store: SignalStore,
        round_source: Any,
        settings: SignalSettings,
        notifier: BaseNotifier,
        params: Optional[ActivationParams] = None,
        stop_event: Optional[threading.Event] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.signal_store = signal_store
        self.round_source = round_source
        self.settings = settings
        self.notifier = notifier
        self.params = params or ActivationParams()
        self.stop_event = stop_event or threading.Event()
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logger

    def _recent_rounds(self, count: int) -> list[float]:
        try:
            return list(self.round_source.recent(count))
        except Exception as e:
            self.logger.warning("Round source unavailable", error=str(e))
            return []

    def analysis_condition(self, signal_id: int = 0) -> bool:
        """
        Whether enough recent rounds fell inside the analysis band.

        No rounds at all counts as "not met".
        """
        count = self.settings.analysis_rounds()
        threshold = self.settings.analysis_percentage()
        low, high = self.settings.analysis_band()

        rounds = self._recent_rounds(count)
        if not rounds:
            log_gate_decision(
                gating_logger, "analysis", False, signal_id, "no recent rounds"
            )
            return False

        percentage = len(in_band(rounds, low, high)) * 100 / len(rounds)
        passed = percentage >= threshold
        log_gate_decision(
            gating_logger, "analysis", passed, signal_id,
            f"{percentage:.1f}% of {len(rounds)} rounds in [{low}, {high}]",
            context={"threshold": threshold}
        )
        return passed

    def select_multiplier(self) -> float:
        """
        Pick a recent in-band round's value, or a uniform draw from the band
        when none qualifies. Rounded to two decimals.
        """
        low, high = self.settings.issuing_band()
        candidates = in_band(self._recent_rounds(self.settings.analysis_rounds()), low, high)

        if candidates:
            value = self.rng.choice(candidates)
        else:
            value = self.rng.uniform(low, high)

        return round(value, 2)

    def _still_pending(self, signal_id: int) -> bool:
        signal = self.signal_store.get(signal_id)
        return signal is not None and signal.status == SignalStatus.PENDING

    def _wait_for_gate(self, signal_id: int) -> tuple[Optional[ActivationOutcome], bool]:
        """
        Poll the analysis gate until it opens or the wait ceiling passes.

        Returns an early outcome (cancelled/abandoned) or None to proceed,
        plus whether the gate actually opened.
        """
        deadline = time.monotonic() + self.params.max_wait_seconds

        while not self.analysis_condition(signal_id):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.info(
                    "Analysis gate wait exceeded, activating anyway",
                    signal_id=signal_id,
                    max_wait_seconds=self.params.max_wait_seconds
                )
                return None, False

            if self.stop_event.wait(min(self.params.poll_interval_seconds, remaining)):
                return ActivationOutcome.CANCELLED, False

            if not self._still_pending(signal_id):
                return ActivationOutcome.ABANDONED, False

        return None, True

    def activate(
        self,
        signal_id: int,
        user_id: int,
        chat_id: Optional[str] = None
    ) -> ActivationResult:
        """Run the full workflow for one PENDING signal."""
        log = self.logger.bind(signal_id=signal_id, user_id=user_id)

        if not self._still_pending(signal_id):
            log.info("Signal no longer pending, skipping activation")
            return ActivationResult(ActivationOutcome.ABANDONED, signal_id)

        self.notifier.send(chat_id, Messages.GRANTED)

        early, gate_met = self._wait_for_gate(signal_id)
        if early is not None:
            log.info("Activation stopped during gate wait", outcome=early.value)
            return ActivationResult(early, signal_id)

        self.notifier.send(chat_id, Messages.COMING_SOON)

        if self.stop_event.wait(self.settings.receive_time_seconds()):
            log.info("Activation cancelled during pacing delay")
            return ActivationResult(ActivationOutcome.CANCELLED, signal_id, gate_met=gate_met)

        multiplier = self.select_multiplier()

        if not self.signal_store.activate(signal_id, multiplier, self.clock()):
            log.info("Signal vanished before activation")
            return ActivationResult(ActivationOutcome.ABANDONED, signal_id, gate_met=gate_met)

        self.notifier.send(chat_id, Messages.READY)
        log.info("Signal activated", multiplier=multiplier, gate_met=gate_met)
        return ActivationResult(
            ActivationOutcome.ACTIVATED, signal_id, multiplier=multiplier, gate_met=gate_met
        )


class ActivationExecutor:
    """Fire-and-forget runner for activation workflows."""

    def __init__(self, worker: ActivationWorker, max_workers: int = 64):
        self.worker = worker
        self.max_workers = max_workers
        self.logger = logger
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="activation"
        )
        self._lock = threading.Lock()
        self._in_flight: set[Future] = set()

    def submit(self, signal: Signal, chat_id: Optional[str] = None) -> Future:
        future = self._pool.submit(self.worker.activate, signal.id, signal.user_id, chat_id)
        with self._lock:
            self._in_flight.add(future)
        future.add_done_callback(self._on_done)
        return future

    def _on_done(self, future: Future) -> None:
        with self._lock:
            self._in_flight.discard(future)

        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.logger.error("Activation workflow failed", error=str(error))

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)

    @property
    def free_slots(self) -> int:
        """Workflows that can start now without queueing behind others."""
        return max(self.max_workers - self.in_flight, 0)

    def shutdown(self, wait: bool = True) -> None:
        self.worker.stop_event.set()
        self._pool.shutdown(wait=wait, cancel_futures=True)
