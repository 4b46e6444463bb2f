"""
Admission cycle: picks eligible users and grants them PENDING signals.

One cycle runs per tick across the whole cluster. The cycle is guarded by a
database-backed lock, and each grant re-checks eligibility inside its own
write transaction, so concurrent cycles can never produce a second open
signal for a user.
"""

import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import structlog

from ..config.settings import SignalSettings
from ..persistence.cluster_lock import ClusterLock
from ..persistence.signal_store import GrantResult, SignalStore
from ..persistence.user_ledger import UserLedger
from ..state.models import Signal, User
from ..utils.time import is_time_in_ranges, utc_now

logger = structlog.get_logger(__name__)

ADMISSION_LOCK_NAME = "admission-cycle"


class SkipReason:
    OUTSIDE_WINDOW = "outside_window"
    LOCK_BUSY = "lock_busy"
    NO_CAPACITY = "no_capacity"


@dataclass
class AdmissionReport:
    """What one admission cycle did."""
    skipped: Optional[str] = None
    eligible: int = 0
    selected: int = 0
    granted: list[int] = field(default_factory=list)
    outcomes: dict[str, int] = field(default_factory=dict)
    failed: int = 0

    def record(self, result: GrantResult) -> None:
        key = result.outcome.value
        self.outcomes[key] = self.outcomes.get(key, 0) + 1
        if result.granted and result.signal is not None:
            self.granted.append(result.signal.id)


class AdmissionScheduler:
    """Grants signals to a random subset of eligible users."""

    def __init__(
        self,
        user_ledger: UserLedger,
        signal_store: SignalStore,
        settings: SignalSettings,
        lock: ClusterLock,
        dispatch: Optional[Callable[[Signal, Optional[str]], Any]] = None,
        capacity: Optional[Callable[[], int]] = None,
        timezone: str = "Europe/Moscow",
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.user_ledger = user_ledger
        self.signal_store = signal_store
        self.settings = settings
        self.lock = lock
        self.dispatch = dispatch
        self.capacity = capacity
        self.timezone = timezone
        self.clock = clock
        self.rng = rng or random.Random()
        self.logger = logger

    def in_allowed_window(self, now: datetime) -> bool:
        """Whether ``now`` falls in a configured request range (or none are set)."""
        return is_time_in_ranges(now, self.settings.request_ranges(), self.timezone)

    def select(self, users: list[User], quota: int) -> list[User]:
        """Uniformly random subset of at most ``quota`` users."""
        shuffled = list(users)
        self.rng.shuffle(shuffled)
        return shuffled[:quota]

    def effective_quota(self) -> int:
        """
        Configured quota, capped at the activation slots free right now.

        Users left out stay eligible for the next cycle.
        """
        quota = self.settings.max_users()
        if self.capacity is None:
            return quota

        free = self.capacity()
        if free < quota:
            self.logger.info("Activation capacity limits admission", quota=quota, free_slots=free)
            return max(free, 0)
        return quota

    def grant(self, user: User, now: datetime, recovery_seconds: float) -> GrantResult:
        """
        Grant one user a PENDING signal and hand it to activation.

        A lost race or changed eligibility comes back as a non-granted
        outcome, not an error. The user is told about the grant by the
        activation workflow, outside the cluster lock.
        """
        result = self.signal_store.grant_pending(user.id, now, recovery_seconds)
        if not result.granted:
            self.logger.debug("Grant skipped", user_id=user.id, outcome=result.outcome.value)
            return result

        if self.dispatch is not None:
            try:
                self.dispatch(result.signal, user.chat_id)
            except Exception as e:
                # The reaper removes the pending signal if activation never starts
                self.logger.error(
                    "Failed to dispatch activation",
                    user_id=user.id,
                    signal_id=result.signal.id,
                    error=str(e)
                )

        return result

    def run_cycle(self, now: Optional[datetime] = None) -> AdmissionReport:
        """Run one admission cycle."""
        now = now or self.clock()
        report = AdmissionReport()

        if not self.in_allowed_window(now):
            report.skipped = SkipReason.OUTSIDE_WINDOW
            self.logger.debug("Outside request ranges, skipping admission")
            return report

        with self.lock.hold(now) as acquired:
            if not acquired:
                report.skipped = SkipReason.LOCK_BUSY
                self.logger.info("Admission cycle already running elsewhere, skipping")
                return report

            recovery_seconds = self.settings.recovery_seconds()
            quota = self.effective_quota()
            if quota <= 0:
                report.skipped = SkipReason.NO_CAPACITY
                self.logger.warning("No free activation slots, skipping admission")
                return report

            eligible = self.user_ledger.find_eligible(now, recovery_seconds)
            selected = self.select(eligible, quota)
            report.eligible = len(eligible)
            report.selected = len(selected)

            for user in selected:
                try:
                    report.record(self.grant(user, now, recovery_seconds))
                except Exception as e:
                    report.failed += 1
                    self.logger.error(
                        "Error creating signal request",
                        user_id=user.id,
                        error=str(e)
                    )

        self.logger.info(
            "Admission cycle finished",
            eligible=report.eligible,
            selected=report.selected,
            granted=len(report.granted),
            failed=report.failed,
            outcomes=report.outcomes
        )
        return report
