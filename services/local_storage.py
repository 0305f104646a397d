"""Device-local key/value storage backed by SQLite.

Values are stored as JSON text, so anything ``json.dumps`` accepts can be
saved. Used for the offline cache, the pending-action queue, the stores'
persisted snapshots and the SMS settings.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, List, Optional

logger = logging.getLogger(__name__)


class LocalStorage:
    def __init__(self, db_path: str = "data/local_storage.db"):
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._memory_conn: Optional[sqlite3.Connection] = None
        self._init_db()

    def _init_db(self):
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS items (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    @contextmanager
    def _get_connection(self):
        # An in-memory database only lives as long as its connection.
        if str(self.db_path) == ":memory:":
            if self._memory_conn is None:
                self._memory_conn = sqlite3.connect(":memory:", check_same_thread=False)
                self._memory_conn.row_factory = sqlite3.Row
            yield self._memory_conn
            return

        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get_item(self, key: str, default: Any = None) -> Any:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT value FROM items WHERE key = ?", (key,))
            row = cursor.fetchone()
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.warning(f"Discarding unreadable local value for {key}")
            return default

    def set_item(self, key: str, value: Any) -> None:
        payload = json.dumps(value, ensure_ascii=False)
        with self._get_connection() as conn:
            conn.execute(
                """INSERT INTO items (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                   ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                  updated_at = excluded.updated_at""",
                (key, payload),
            )
            conn.commit()
        logger.debug(f"Stored local value {key}")

    def remove_item(self, key: str) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM items WHERE key = ?", (key,))
            conn.commit()

    def keys(self, prefix: str = "") -> List[str]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT key FROM items WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            )
            return [row["key"] for row in cursor.fetchall()]

    def clear(self, prefix: str = "") -> int:
        """Remove all keys starting with ``prefix``. Returns the number removed."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM items WHERE substr(key, 1, ?) = ?", (len(prefix), prefix))
            conn.commit()
            return cursor.rowcount
