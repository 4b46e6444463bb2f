"""
Redemption path: claiming an ACTIVE signal and reporting a user's status.

Rejections are raised as RedemptionError subclasses so the API layer can
map them to distinct responses.
"""

import math
from datetime import datetime
from typing import Callable, Optional

import structlog

from ..config.settings import SignalSettings
from ..errors import InsufficientEnergyError, SignalNotFoundError, UserNotFoundError
from ..persistence.signal_store import ClaimOutcome, SignalStore
from ..persistence.user_ledger import UserLedger
from ..state.models import Signal, SignalRequestStatus, SignalStatus
from ..utils.time import time_elapsed_seconds, utc_now

logger = structlog.get_logger(__name__)


class RedemptionService:
    """Claim, status and clear operations for the requesting user."""

    def __init__(
        self,
        user_ledger: UserLedger,
        signal_store: SignalStore,
        settings: SignalSettings,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.user_ledger = user_ledger
        self.signal_store = signal_store
        self.settings = settings
        self.clock = clock
        self.logger = logger

    def claim(self, user_id: int, signal_id: int, now: Optional[datetime] = None) -> Signal:
        """
        Redeem the user's ACTIVE signal, spending one unit of energy.

        Raises:
            UserNotFoundError: unknown user
            InsufficientEnergyError: the user has no energy
            SignalNotFoundError: no ACTIVE, unexpired signal with this ID
                belongs to the user (covers concurrent duplicate claims)
        """
        now = now or self.clock()
        result = self.signal_store.complete_claim(
            user_id, signal_id, now, self.settings.confirm_timeout_seconds()
        )

        if result.outcome == ClaimOutcome.USER_MISSING:
            raise UserNotFoundError(user_id)
        if result.outcome == ClaimOutcome.NO_ENERGY:
            raise InsufficientEnergyError(user_id, energy=result.energy)
        if result.outcome == ClaimOutcome.NOT_FOUND:
            self.logger.info("Claim rejected", user_id=user_id, signal_id=signal_id)
            raise SignalNotFoundError(signal_id, user_id=user_id)

        self.logger.info(
            "Signal claimed",
            user_id=user_id,
            signal_id=signal_id,
            remaining_energy=result.energy
        )
        return result.signal

    def status(self, user_id: int, now: Optional[datetime] = None) -> SignalRequestStatus:
        """
        What the client should show: waiting, ready, or idle with cooldown.

        Raises:
            UserNotFoundError: unknown user
        """
        now = now or self.clock()
        user = self.user_ledger.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)

        signal = self.signal_store.get_open_for_user(user_id)

        if signal is not None and signal.status == SignalStatus.PENDING:
            return SignalRequestStatus(
                can_request=False,
                is_pending=True,
                request_time=signal.created_at,
                signal_id=signal.id,
            )

        if signal is not None and signal.activated_at is not None:
            return SignalRequestStatus(
                can_request=False,
                activated_at=signal.activated_at,
                confirm_timeout_seconds=self.settings.confirm_timeout_seconds(),
                signal_id=signal.id,
            )

        cooldown_seconds = None
        if user.last_request_at is not None:
            elapsed = time_elapsed_seconds(user.last_request_at, now)
            required = self.settings.recovery_seconds()
            if elapsed < required:
                cooldown_seconds = math.ceil(required - elapsed)

        return SignalRequestStatus(
            can_request=not cooldown_seconds,
            cooldown_seconds=cooldown_seconds,
        )

    def clear_request(self, user_id: int) -> int:
        """
        Drop the user's PENDING signal so a stuck client can recover.

        Idempotent: returns the number of signals removed (0 when none).

        Raises:
            UserNotFoundError: unknown user
        """
        if self.user_ledger.get(user_id) is None:
            raise UserNotFoundError(user_id)

        removed = self.signal_store.clear_pending(user_id)
        if removed:
            self.logger.info("Signal request cleared", user_id=user_id, removed=removed)
        return removed
