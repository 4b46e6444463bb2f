"""Signal persistence layer: the authoritative source of signal state."""

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..logging.config import get_state_logger, log_state_transition
from ..state.models import Signal, SignalStatus
from ..state.transitions import SignalEvent, target_state
from ..utils.time import from_timestamp, to_timestamp
from .database import OPEN_STATUSES, Database

state_logger = get_state_logger(__name__)


class GrantOutcome(Enum):
    """Result of one grant attempt."""
    GRANTED = "granted"
    ALREADY_OPEN = "already_open"      # User already holds a pending/active signal
    NOT_ELIGIBLE = "not_eligible"      # Eligibility changed since selection
    LOST_RACE = "lost_race"            # Unique index rejected a concurrent insert
    USER_MISSING = "user_missing"


class ClaimOutcome(Enum):
    """Result of one claim attempt."""
    COMPLETED = "completed"
    USER_MISSING = "user_missing"
    NO_ENERGY = "no_energy"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class GrantResult:
    outcome: GrantOutcome
    signal: Optional[Signal] = None

    @property
    def granted(self) -> bool:
        return self.outcome == GrantOutcome.GRANTED


@dataclass(frozen=True)
class ClaimResult:
    outcome: ClaimOutcome
    signal: Optional[Signal] = None
    energy: Optional[int] = None


def row_to_signal(row: sqlite3.Row) -> Signal:
    """Convert database row to Signal object."""
    return Signal(
        id=row["id"],
        user_id=row["user_id"],
        status=SignalStatus(row["status"]),
        multiplier=row["multiplier"],
        created_at=from_timestamp(row["created_at"]),
        activated_at=from_timestamp(row["activated_at"]),
    )


class SignalStore:
    """
    SQLite-backed signal repository.

    Every lifecycle mutation is a single conditional statement or an
    immediate transaction, so the "one open signal per user" and "one debit
    per claim" invariants hold across any number of processes.
    """

    def __init__(self, database: Database):
        self.database = database
        self.logger = state_logger

    def get(self, signal_id: int) -> Optional[Signal]:
        """Get a signal by ID."""
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM signals WHERE id = ?", (signal_id,)
            ).fetchone()

        return row_to_signal(row) if row else None

    def get_open_for_user(self, user_id: int) -> Optional[Signal]:
        """The user's pending or active signal, if any."""
        with self.database.connection() as conn:
            row = conn.execute(f"""
                SELECT * FROM signals
                WHERE user_id = ? AND status IN ({OPEN_STATUSES})
                ORDER BY id DESC LIMIT 1
            """, (user_id,)).fetchone()

        return row_to_signal(row) if row else None

    def count_open_for_user(self, user_id: int) -> int:
        with self.database.connection() as conn:
            return conn.execute(f"""
                SELECT COUNT(*) FROM signals
                WHERE user_id = ? AND status IN ({OPEN_STATUSES})
            """, (user_id,)).fetchone()[0]

    def grant_pending(
        self,
        user_id: int,
        now: datetime,
        recovery_seconds: float
    ) -> GrantResult:
        """
        Create a PENDING signal for the user if they are still eligible.

        Eligibility is re-checked inside the write transaction because the
        selection query that picked the user ran without any lock.
        """
        new_status = target_state(None, SignalEvent.GRANT)
        now_ts = to_timestamp(now)

        try:
            with self.database.transaction() as conn:
                user = conn.execute(
                    "SELECT * FROM users WHERE id = ?", (user_id,)
                ).fetchone()
                if user is None:
                    return GrantResult(GrantOutcome.USER_MISSING)

                open_signal = conn.execute(f"""
                    SELECT id FROM signals
                    WHERE user_id = ? AND status IN ({OPEN_STATUSES})
                """, (user_id,)).fetchone()
                if open_signal is not None:
                    return GrantResult(GrantOutcome.ALREADY_OPEN)

                last_request_at = user["last_request_at"]
                if (
                    not user["is_access_allowed"]
                    or not user["has_credential"]
                    or user["energy"] < 1
                    or (last_request_at is not None
                        and now_ts - last_request_at < recovery_seconds)
                ):
                    return GrantResult(GrantOutcome.NOT_ELIGIBLE)

                conn.execute(
                    "UPDATE users SET last_request_at = ? WHERE id = ?",
                    (now_ts, user_id)
                )
                cursor = conn.execute("""
                    INSERT INTO signals (user_id, status, multiplier, created_at)
                    VALUES (?, ?, 0, ?)
                """, (user_id, new_status, now_ts))
                signal_id = cursor.lastrowid

        except sqlite3.IntegrityError as e:
            self.logger.info("Grant lost race", user_id=user_id, error=str(e))
            return GrantResult(GrantOutcome.LOST_RACE)

        signal = Signal(
            id=signal_id,
            user_id=user_id,
            status=SignalStatus.PENDING,
            multiplier=0.0,
            created_at=from_timestamp(now_ts),
        )
        log_state_transition(
            self.logger, signal_id, "none", new_status, SignalEvent.GRANT.value,
            context={"user_id": user_id}
        )
        return GrantResult(GrantOutcome.GRANTED, signal)

    def activate(self, signal_id: int, multiplier: float, now: datetime) -> bool:
        """
        Move a PENDING signal to ACTIVE.

        Returns False when the signal vanished or already left PENDING.
        """
        new_status = target_state(SignalStatus.PENDING, SignalEvent.ACTIVATE)

        with self.database.transaction() as conn:
            cursor = conn.execute("""
                UPDATE signals SET status = ?, multiplier = ?, activated_at = ?
                WHERE id = ? AND status = ?
            """, (new_status, multiplier, to_timestamp(now),
                  signal_id, SignalStatus.PENDING.value))

        if cursor.rowcount != 1:
            return False

        log_state_transition(
            self.logger, signal_id, SignalStatus.PENDING.value, new_status,
            SignalEvent.ACTIVATE.value, context={"multiplier": multiplier}
        )
        return True

    def complete_claim(
        self,
        user_id: int,
        signal_id: int,
        now: datetime,
        confirm_timeout_seconds: float
    ) -> ClaimResult:
        """
        Redeem an ACTIVE signal and debit one unit of energy, atomically.

        The ACTIVE → COMPLETED update is conditional on the current status,
        so of any number of concurrent claims exactly one changes a row.
        """
        new_status = target_state(SignalStatus.ACTIVE, SignalEvent.CLAIM)
        freshness_cutoff = to_timestamp(now) - confirm_timeout_seconds

        with self.database.transaction() as conn:
            user = conn.execute(
                "SELECT energy FROM users WHERE id = ?", (user_id,)
            ).fetchone()
            if user is None:
                return ClaimResult(ClaimOutcome.USER_MISSING)
            if user["energy"] < 1:
                return ClaimResult(ClaimOutcome.NO_ENERGY, energy=user["energy"])

            cursor = conn.execute("""
                UPDATE signals SET status = ?
                WHERE id = ? AND user_id = ? AND status = ? AND activated_at > ?
            """, (new_status, signal_id, user_id,
                  SignalStatus.ACTIVE.value, freshness_cutoff))
            if cursor.rowcount != 1:
                return ClaimResult(ClaimOutcome.NOT_FOUND)

            conn.execute(
                "UPDATE users SET energy = energy - 1 WHERE id = ?", (user_id,)
            )
            row = conn.execute(
                "SELECT * FROM signals WHERE id = ?", (signal_id,)
            ).fetchone()

        log_state_transition(
            self.logger, signal_id, SignalStatus.ACTIVE.value, new_status,
            SignalEvent.CLAIM.value, context={"user_id": user_id}
        )
        return ClaimResult(
            ClaimOutcome.COMPLETED, row_to_signal(row), energy=user["energy"] - 1
        )

    def clear_pending(self, user_id: int) -> int:
        """Delete the user's PENDING signals; returns how many were removed."""
        new_status = target_state(SignalStatus.PENDING, SignalEvent.CLEAR)

        with self.database.transaction() as conn:
            rows = conn.execute(
                "SELECT id FROM signals WHERE user_id = ? AND status = ?",
                (user_id, SignalStatus.PENDING.value)
            ).fetchall()
            conn.executemany(
                "DELETE FROM signals WHERE id = ?", [(row["id"],) for row in rows]
            )

        for row in rows:
            log_state_transition(
                self.logger, row["id"], SignalStatus.PENDING.value, new_status,
                SignalEvent.CLEAR.value, context={"user_id": user_id}
            )
        return len(rows)

    def delete_expired(self, status: SignalStatus, cutoff: datetime) -> int:
        """
        Delete signals in ``status`` whose age reference is at or before ``cutoff``.

        PENDING signals age from ``created_at``, ACTIVE ones from ``activated_at``.
        """
        new_status = target_state(status, SignalEvent.EXPIRE)
        column = "activated_at" if status == SignalStatus.ACTIVE else "created_at"

        with self.database.transaction() as conn:
            rows = conn.execute(f"""
                SELECT id, user_id FROM signals WHERE status = ? AND {column} <= ?
            """, (status.value, to_timestamp(cutoff))).fetchall()
            conn.executemany(
                "DELETE FROM signals WHERE id = ?", [(row["id"],) for row in rows]
            )

        for row in rows:
            log_state_transition(
                self.logger, row["id"], status.value, new_status,
                SignalEvent.EXPIRE.value, context={"user_id": row["user_id"]}
            )
        return len(rows)

    def list_history(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[SignalStatus] = None,
        user_id: Optional[int] = None
    ) -> tuple[list[Signal], int]:
        """
        Non-pending signals, newest first, with the total matching count.

        Args:
            page: 1-based page number
            limit: Page size
            status: Optional status filter (PENDING yields nothing)
            user_id: Optional owner filter
        """
        page = max(page, 1)
        limit = max(limit, 1)
        clauses = ["status != ?"]
        params: list[Any] = [SignalStatus.PENDING.value]

        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if user_id is not None:
            clauses.append("user_id = ?")
            params.append(user_id)

        where = " AND ".join(clauses)
        with self.database.connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM signals WHERE {where}", params
            ).fetchone()[0]
            rows = conn.execute(f"""
                SELECT * FROM signals WHERE {where}
                ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?
            """, [*params, limit, (page - 1) * limit]).fetchall()

        return [row_to_signal(row) for row in rows], total

    def get_stats(self) -> dict[str, Any]:
        """Signal counts by status."""
        with self.database.connection() as conn:
            counts = {
                row["status"]: row["count"]
                for row in conn.execute(
                    "SELECT status, COUNT(*) AS count FROM signals GROUP BY status"
                )
            }
        return {
            "total_signals": sum(counts.values()),
            "signals_by_status": counts,
        }
