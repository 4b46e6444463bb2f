"""User ledger: the energy, access and cooldown fields of user records."""

import sqlite3
from datetime import datetime
from typing import Optional

import structlog

from ..state.models import User
from ..utils.time import from_timestamp, to_timestamp
from .database import OPEN_STATUSES, Database

logger = structlog.get_logger(__name__)


def row_to_user(row: sqlite3.Row) -> User:
    """Convert database row to User object."""
    return User(
        id=row["id"],
        energy=row["energy"],
        is_access_allowed=bool(row["is_access_allowed"]),
        has_credential=bool(row["has_credential"]),
        last_request_at=from_timestamp(row["last_request_at"]),
        chat_id=row["chat_id"],
        username=row["username"],
    )


class UserLedger:
    """Repository of user records as seen by the signal engine."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = logger

    def create_user(
        self,
        energy: int = 0,
        is_access_allowed: bool = True,
        has_credential: bool = False,
        chat_id: Optional[str] = None,
        username: Optional[str] = None,
        last_request_at: Optional[datetime] = None,
    ) -> User:
        """Insert a user record; user management lives elsewhere, this seeds it."""
        with self.database.transaction() as conn:
            cursor = conn.execute("""
                INSERT INTO users (
                    chat_id, username, energy, is_access_allowed,
                    has_credential, last_request_at
                ) VALUES (?, ?, ?, ?, ?, ?)
            """, (
                chat_id,
                username,
                energy,
                int(is_access_allowed),
                int(has_credential),
                to_timestamp(last_request_at) if last_request_at else None,
            ))
            user_id = cursor.lastrowid

        user = self.get(user_id)
        assert user is not None
        return user

    def get(self, user_id: int) -> Optional[User]:
        """Get a user by ID."""
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()

        return row_to_user(row) if row else None

    def set_energy(self, user_id: int, energy: int) -> bool:
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET energy = ? WHERE id = ?", (energy, user_id)
            )
        return cursor.rowcount == 1

    def set_access_allowed(self, user_id: int, allowed: bool) -> bool:
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET is_access_allowed = ? WHERE id = ?",
                (int(allowed), user_id)
            )
        return cursor.rowcount == 1

    def set_has_credential(self, user_id: int, has_credential: bool) -> bool:
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET has_credential = ? WHERE id = ?",
                (int(has_credential), user_id)
            )
        return cursor.rowcount == 1

    def find_eligible(self, now: datetime, recovery_seconds: float) -> list[User]:
        """
        Users who may receive a signal at ``now``.

        Eligible means access allowed, at least one unit of energy, a
        redeemed credential, the recovery interval elapsed since the last
        grant and no pending or active signal.
        """
        cutoff = to_timestamp(now) - recovery_seconds

        with self.database.connection() as conn:
            rows = conn.execute(f"""
                SELECT u.* FROM users u
                WHERE u.is_access_allowed = 1
                  AND u.energy >= 1
                  AND u.has_credential = 1
                  AND (u.last_request_at IS NULL OR u.last_request_at <= ?)
                  AND NOT EXISTS (
                      SELECT 1 FROM signals s
                      WHERE s.user_id = u.id
                        AND s.status IN ({OPEN_STATUSES})
                  )
                ORDER BY u.id
            """, (cutoff,)).fetchall()

        return [row_to_user(row) for row in rows]
