"""
Persistent State Manager - SQLite key/value storage for dashboard snapshots

Holds serialized snapshots under fixed keys so the position set survives
restarts. Last write wins; there are no transactional guarantees beyond a
single key.
"""

import sqlite3
import threading
from datetime import datetime
from typing import Dict, Optional
from pathlib import Path

from retoken.core.exceptions import DatabaseError


class PersistentStateManager:
    """
    Manages durable key/value storage using SQLite.

    Stores:
    - Serialized position snapshots
    - Any other small named blobs (e.g. last selected regime)
    """

    def __init__(self, db_path: str = "retoken_state.db"):
        """
        Initialize persistent state manager.

        Args:
            db_path: Path to SQLite database file (":memory:" for tests)
        """
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.db_path = db_path
        self._lock = threading.Lock()
        try:
            self.conn = sqlite3.connect(db_path, check_same_thread=False)
        except sqlite3.Error as e:
            raise DatabaseError(f"Cannot open snapshot database {db_path}: {e}") from e
        self.conn.row_factory = sqlite3.Row
        self._initialize_schema()

    def _initialize_schema(self):
        """Create the key/value table if it doesn't exist."""
        with self._lock:
            self.conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        """Return the stored value for key, or None when absent."""
        try:
            with self._lock:
                cursor = self.conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read key {key!r}: {e}") from e

        return row["value"] if row else None

    def set(self, key: str, value: str):
        """Overwrite the value stored under key."""
        timestamp = datetime.now().isoformat()
        try:
            with self._lock:
                self.conn.execute("""
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                """, (key, value, timestamp))
                self.conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to write key {key!r}: {e}") from e

    def delete(self, key: str):
        """Remove key; missing keys are ignored."""
        try:
            with self._lock:
                self.conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                self.conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete key {key!r}: {e}") from e

    def get_statistics(self) -> Dict:
        """Get storage statistics."""
        try:
            with self._lock:
                cursor = self.conn.execute(
                    "SELECT COUNT(*) AS total, MAX(updated_at) AS last_write FROM kv_store"
                )
                row = cursor.fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read statistics: {e}") from e

        return {
            "stored_keys": row["total"],
            "last_write": row["last_write"],
        }

    def close(self):
        """Close database connection."""
        with self._lock:
            self.conn.close()
