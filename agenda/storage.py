"""
Key/value persistence substrate.

Every ledger is stored as one JSON string under one key. Two backends share
the same three-call interface (get / set / remove):

  SQLiteStorage  - durable, one row per key in a kv_store table
  MemoryStorage  - in-process dict, lost on restart

open_storage() prefers SQLite and falls back to memory when the database
cannot be opened, so the rest of the store never sees the difference.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class Storage:
    """Interface shared by all backends."""

    durable = False

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStorage(Storage):
    """Volatile in-process backend."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class SQLiteStorage(Storage):
    """SQLite-backed key/value slots."""

    durable = True

    def __init__(self, db_path: str):
        """Initialize storage and create the table if needed."""
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def get(self, key: str) -> Optional[str]:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with _connect(self.db_path) as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, ?)",
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            conn.commit()

    def remove(self, key: str) -> None:
        with _connect(self.db_path) as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()


def open_storage(db_path: Optional[str] = None) -> Storage:
    """Open the durable backend, or fall back to memory if it is unavailable."""
    if db_path:
        try:
            return SQLiteStorage(db_path)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Durable storage unavailable at %s (%s), using in-memory fallback", db_path, e)
    else:
        logger.warning("No database path configured, using in-memory fallback")
    return MemoryStorage()
