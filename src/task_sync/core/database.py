"""SQLite access shared by the task store and the mutation queue.

One connection per database file, shared across worker threads
(``check_same_thread=False``) and serialised by a re-entrant lock, so the
async layer can reach it through ``run_sync``.  Every write is committed
immediately; multi-statement work goes through ``transaction()``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MEMORY = ":memory:"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS tasks (
        id              TEXT    PRIMARY KEY,
        title           TEXT    NOT NULL,
        description     TEXT    NOT NULL DEFAULT '',
        completed       INTEGER NOT NULL DEFAULT 0,
        created_at      TEXT    NOT NULL,
        updated_at      TEXT    NOT NULL,
        is_deleted      INTEGER NOT NULL DEFAULT 0,
        sync_status     TEXT    NOT NULL DEFAULT 'pending',
        server_id       TEXT,
        last_synced_at  TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_tasks_sync_status
        ON tasks(sync_status);

    CREATE TABLE IF NOT EXISTS sync_queue (
        seq             INTEGER PRIMARY KEY AUTOINCREMENT,
        id              TEXT    NOT NULL UNIQUE,
        task_id         TEXT    NOT NULL,
        operation       TEXT    NOT NULL,
        data            TEXT    NOT NULL,
        created_at      TEXT    NOT NULL,
        retry_count     INTEGER NOT NULL DEFAULT 0,
        error_message   TEXT
    );

    CREATE INDEX IF NOT EXISTS idx_queue_created
        ON sync_queue(created_at, seq);
    CREATE INDEX IF NOT EXISTS idx_queue_task_id
        ON sync_queue(task_id);

    CREATE TABLE IF NOT EXISTS dead_entries (
        id              TEXT    PRIMARY KEY,
        task_id         TEXT    NOT NULL,
        operation       TEXT    NOT NULL,
        data            TEXT    NOT NULL,
        created_at      TEXT    NOT NULL,
        retry_count     INTEGER NOT NULL,
        error_message   TEXT,
        failed_at       TEXT    NOT NULL
    );
"""


def to_db_timestamp(value: datetime) -> str:
    """Serialise *value* as a fixed-width UTC ISO 8601 string.

    Fixed width keeps lexical order equal to chronological order, which
    the queue relies on for ``ORDER BY created_at``.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db_timestamp(value: str | None) -> datetime | None:
    """Parse a stored timestamp back into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class Database:
    """Thread-safe wrapper around a single SQLite connection.

    Args:
        path: Database file path (``~`` is expanded) or ``":memory:"``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = str(path)
        if self.path != MEMORY:
            db_file = Path(self.path).expanduser()
            db_file.parent.mkdir(parents=True, exist_ok=True)
            self.path = str(db_file)

        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if self.path != MEMORY:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._lock = threading.RLock()
        self._create_tables()

    def _create_tables(self) -> None:
        with self._lock:
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        logger.debug("Database schema ready at %s", self.path)

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def execute(self, sql: str, params: tuple | list = ()) -> int:
        """Run one write statement, commit, and return the affected row count."""
        with self._lock:
            cursor = self._conn.execute(sql, params)
            self._conn.commit()
            return cursor.rowcount

    def fetchone(
        self, sql: str, params: tuple | list = ()
    ) -> dict[str, Any] | None:
        with self._lock:
            row = self._conn.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    def fetchall(
        self, sql: str, params: tuple | list = ()
    ) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock and run several statements atomically.

        Commits on normal exit, rolls back and re-raises on any exception.
        """
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            self._conn.close()
