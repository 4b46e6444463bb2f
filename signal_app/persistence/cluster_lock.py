"""
Cluster-wide advisory lock backed by the shared database.

A lock is a row in ``cluster_locks``. Acquisition never waits: either the
row is inserted (or an expired lease is taken over) or the caller is told to
skip. The lease bounds how long a crashed holder can keep others out.
"""

import os
import socket
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, Optional

import structlog

from ..utils.time import to_timestamp, utc_now
from .database import Database

logger = structlog.get_logger(__name__)


def default_owner() -> str:
    """Identity unique to this lock holder across hosts and processes."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class ClusterLock:
    """Named, non-blocking, lease-based lock shared by all processes."""

    def __init__(
        self,
        database: Database,
        name: str,
        lease_seconds: float = 300.0,
        owner: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.database = database
        self.name = name
        self.lease_seconds = lease_seconds
        self.owner = owner or default_owner()
        self.clock = clock
        self.logger = logger.bind(lock=name, owner=self.owner)

    def try_acquire(self, now: Optional[datetime] = None) -> bool:
        """Take the lock if it is free or its lease has expired."""
        now = now or self.clock()
        now_ts = to_timestamp(now)
        expires_ts = to_timestamp(now + timedelta(seconds=self.lease_seconds))

        with self.database.transaction() as conn:
            conn.execute(
                "DELETE FROM cluster_locks WHERE name = ? AND expires_at <= ?",
                (self.name, now_ts)
            )
            cursor = conn.execute("""
                INSERT OR IGNORE INTO cluster_locks (name, owner, acquired_at, expires_at)
                VALUES (?, ?, ?, ?)
            """, (self.name, self.owner, now_ts, expires_ts))

        acquired = cursor.rowcount == 1
        if acquired:
            self.logger.debug("Cluster lock acquired")
        else:
            self.logger.debug("Cluster lock busy")
        return acquired

    def release(self) -> bool:
        """Release the lock if this owner still holds it."""
        with self.database.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM cluster_locks WHERE name = ? AND owner = ?",
                (self.name, self.owner)
            )

        released = cursor.rowcount == 1
        if released:
            self.logger.debug("Cluster lock released")
        return released

    def holder(self) -> Optional[str]:
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT owner FROM cluster_locks WHERE name = ?", (self.name,)
            ).fetchone()
        return row["owner"] if row else None

    @contextmanager
    def hold(self, now: Optional[datetime] = None) -> Iterator[bool]:
        """
        Scoped acquisition: yields whether the lock was taken and releases it
        on every exit path when it was.
        """
        acquired = self.try_acquire(now)
        try:
            yield acquired
        finally:
            if acquired:
                self.release()
