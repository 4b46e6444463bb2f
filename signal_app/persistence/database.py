"""Shared SQLite database: connections, write transactions and schema."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import structlog

from ..errors import PersistenceError
from ..state.models import SignalStatus

logger = structlog.get_logger(__name__)

# SQL list of statuses that count as an open signal
OPEN_STATUSES = ", ".join(f"'{status.value}'" for status in SignalStatus.non_terminal())

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        chat_id TEXT,
        username TEXT,
        energy INTEGER NOT NULL DEFAULT 0 CHECK (energy >= 0),
        is_access_allowed INTEGER NOT NULL DEFAULT 1,
        has_credential INTEGER NOT NULL DEFAULT 0,
        last_request_at REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS signals (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        status TEXT NOT NULL CHECK (status IN ('pending', 'active', 'completed')),
        multiplier REAL NOT NULL DEFAULT 0,
        created_at REAL NOT NULL,
        activated_at REAL
    )
    """,
    # At most one pending/active signal per user, enforced by the store itself
    f"""
    CREATE UNIQUE INDEX IF NOT EXISTS uq_signals_open_per_user
        ON signals(user_id) WHERE status IN ({OPEN_STATUSES})
    """,
    "CREATE INDEX IF NOT EXISTS idx_signals_status ON signals(status)",
    "CREATE INDEX IF NOT EXISTS idx_signals_created_at ON signals(created_at)",
    "CREATE INDEX IF NOT EXISTS idx_signals_activated_at ON signals(activated_at)",
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rounds (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        round_id TEXT NOT NULL UNIQUE,
        multiplier REAL NOT NULL,
        created_at REAL NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_rounds_created_at ON rounds(created_at)",
    """
    CREATE TABLE IF NOT EXISTS cluster_locks (
        name TEXT PRIMARY KEY,
        owner TEXT NOT NULL,
        acquired_at REAL NOT NULL,
        expires_at REAL NOT NULL
    )
    """,
)


class Database:
    """
    SQLite database shared by every process of the deployment.

    Connections are opened per operation. Writes go through
    :meth:`transaction`, which takes the database write lock up front
    (``BEGIN IMMEDIATE``) so read-check-write sequences are serialized
    against every other writer.
    """

    def __init__(self, db_path: str = "signals.db", busy_timeout: float = 30.0):
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.logger = logger.bind(db_path=str(self.db_path))

        self._init_database()

    def _init_database(self) -> None:
        """Initialize database schema."""
        if self.db_path.parent and not self.db_path.parent.exists():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

        with self.transaction() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Get an autocommit connection with proper error handling."""
        conn = None
        try:
            conn = sqlite3.connect(
                self.db_path,
                timeout=self.busy_timeout,
                isolation_level=None,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA synchronous=NORMAL")
            yield conn
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            self.logger.error("Database error", error=str(e))
            raise PersistenceError(str(e), target=str(self.db_path)) from e
        finally:
            if conn:
                conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements in one immediate write transaction."""
        with self.connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
