"""
Key-value persistence for identity state.

``KeyValueStore`` is the minimal string-to-string interface the identity
store needs. ``SqliteKeyValueStore`` persists it in one SQLite table;
pass ``":memory:"`` for an in-process store.

Failure semantics:
    The backend may be unavailable (locked file, unwritable directory).
    Such errors are logged at WARNING and swallowed: reads return None,
    writes become no-ops. Callers treat a missing value as "no identity".
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


@runtime_checkable
class KeyValueStore(Protocol):
    """String key-value store."""

    def get(self, key: str) -> str | None:
        ...

    def set_many(self, items: Iterable[tuple[str, str]]) -> None:
        """Write several keys in one commit."""
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, *keys: str) -> None:
        ...

    def keys(self, prefix: str = "") -> list[str]:
        ...


class SqliteKeyValueStore:
    """SQLite-backed ``KeyValueStore``.

    Args:
        db_path: Path to the database file, or ":memory:" for in-memory.
    """

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._db_path = str(db_path)
        self._is_memory = self._db_path == ":memory:"

        if self._is_memory:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
        else:
            self._persistent_conn = None

        try:
            with self._transaction() as conn:
                conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            logger.warning("key-value store unavailable at %s: %s", self._db_path, exc)

    def _get_conn(self) -> sqlite3.Connection:
        if self._persistent_conn is not None:
            return self._persistent_conn
        conn = sqlite3.connect(self._db_path)
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a database transaction."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if self._persistent_conn is None:
                conn.close()

    # -----------------------------------------------------------------
    # KeyValueStore
    # -----------------------------------------------------------------

    def get(self, key: str) -> str | None:
        try:
            with self._transaction() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.warning("read of %r failed: %s", key, exc)
            return None
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self.set_many([(key, value)])

    def set_many(self, items: Iterable[tuple[str, str]]) -> None:
        rows = list(items)
        if not rows:
            return
        try:
            with self._transaction() as conn:
                conn.executemany(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    rows,
                )
        except sqlite3.Error as exc:
            logger.warning("write of %d key(s) failed: %s", len(rows), exc)

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            with self._transaction() as conn:
                conn.executemany("DELETE FROM kv WHERE key = ?", [(k,) for k in keys])
        except sqlite3.Error as exc:
            logger.warning("delete of %d key(s) failed: %s", len(keys), exc)

    def keys(self, prefix: str = "") -> list[str]:
        try:
            with self._transaction() as conn:
                rows = conn.execute(
                    "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                    (len(prefix), prefix),
                ).fetchall()
        except sqlite3.Error as exc:
            logger.warning("key scan for %r failed: %s", prefix, exc)
            return []
        return [row[0] for row in rows]
