"""Key/value settings table; values are stored as JSON text."""

from typing import Any, Optional

import orjson
import structlog

from .database import Database

logger = structlog.get_logger(__name__)


class SettingStore:
    """Raw access to the settings table. Typed reads go through SignalSettings."""

    def __init__(self, database: Database):
        self.database = database
        self.logger = logger

    def get(self, key: str) -> Optional[Any]:
        """
        Get the decoded value for ``key``.

        Text that is not valid JSON is returned as the raw string, so an
        admin who saved ``15`` or ``"15"`` reads back the same thing.
        """
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT value FROM settings WHERE key = ?", (key,)
            ).fetchone()

        if row is None:
            return None

        try:
            return orjson.loads(row["value"])
        except orjson.JSONDecodeError:
            return row["value"]

    def set(self, key: str, value: Any) -> None:
        encoded = orjson.dumps(value).decode("utf-8")
        with self.database.transaction() as conn:
            conn.execute("""
                INSERT INTO settings (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """, (key, encoded))

        self.logger.info("Setting updated", key=key)

    def delete(self, key: str) -> bool:
        with self.database.transaction() as conn:
            cursor = conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        return cursor.rowcount == 1
