"""Recent round outcomes, the read side of the market data feed."""

from datetime import datetime
from typing import Iterable, Optional

import structlog

from ..utils.time import to_timestamp, utc_now
from .database import Database

logger = structlog.get_logger(__name__)

MAX_STORED_ROUNDS = 100


class RoundStore:
    """Round outcomes ordered by observation time."""

    def __init__(self, database: Database, max_rounds: int = MAX_STORED_ROUNDS):
        self.database = database
        self.max_rounds = max_rounds
        self.logger = logger

    def recent(self, n: int) -> list[float]:
        """The multipliers of the ``n`` most recent rounds, newest first."""
        if n <= 0:
            return []

        with self.database.connection() as conn:
            rows = conn.execute("""
                SELECT multiplier FROM rounds
                ORDER BY created_at DESC, id DESC LIMIT ?
            """, (n,)).fetchall()

        return [row["multiplier"] for row in rows]

    def record(
        self,
        rounds: Iterable[tuple[str, float]],
        observed_at: Optional[datetime] = None
    ) -> int:
        """
        Store newly observed rounds, oldest first, skipping known round IDs.

        Only the newest ``max_rounds`` rows are retained.

        Returns:
            Number of rounds inserted
        """
        observed_ts = to_timestamp(observed_at or utc_now())
        inserted = 0

        with self.database.transaction() as conn:
            for round_id, multiplier in rounds:
                cursor = conn.execute("""
                    INSERT OR IGNORE INTO rounds (round_id, multiplier, created_at)
                    VALUES (?, ?, ?)
                """, (round_id, round(float(multiplier), 2), observed_ts))
                inserted += cursor.rowcount

            conn.execute("""
                DELETE FROM rounds WHERE id NOT IN (
                    SELECT id FROM rounds ORDER BY created_at DESC, id DESC LIMIT ?
                )
            """, (self.max_rounds,))

        if inserted:
            self.logger.info("Recorded rounds", inserted=inserted)
        return inserted
