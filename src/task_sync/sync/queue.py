"""Durable FIFO log of pending task mutations.

Entries live in the ``sync_queue`` table and are ordered by enqueue time,
with the insertion sequence breaking ties.  Entries that exhaust their
retries can be parked in ``dead_entries`` and requeued later.

Every ``sqlite3.Error`` is re-raised as ``StorageError`` so callers only
deal with the sync exception hierarchy.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Collection, Iterable
from typing import Any

from task_sync.core.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
)
from task_sync.sync.errors import StorageError
from task_sync.sync.models import (
    DeadEntry,
    OperationKind,
    QueueEntry,
    utc_now,
)

logger = logging.getLogger(__name__)

_ENTRY_COLUMNS = (
    "id, task_id, operation, data, created_at, retry_count, error_message"
)


def _row_to_entry(row: dict[str, Any]) -> QueueEntry:
    return QueueEntry(
        id=row["id"],
        task_id=row["task_id"],
        operation=OperationKind(row["operation"]),
        data=json.loads(row["data"]),
        created_at=from_db_timestamp(row["created_at"]),
        retry_count=row["retry_count"],
        error_message=row["error_message"],
    )


def _row_to_dead(row: dict[str, Any]) -> DeadEntry:
    return DeadEntry(
        id=row["id"],
        task_id=row["task_id"],
        operation=OperationKind(row["operation"]),
        data=json.loads(row["data"]),
        created_at=from_db_timestamp(row["created_at"]),
        retry_count=row["retry_count"],
        error_message=row["error_message"],
        failed_at=from_db_timestamp(row["failed_at"]),
    )


class MutationQueue:
    """Ordered, persistent queue of ``QueueEntry`` records.

    Args:
        db: Shared database handle.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Append / read
    # ------------------------------------------------------------------

    def enqueue(
        self,
        task_id: str,
        operation: OperationKind | str,
        data: dict[str, Any],
    ) -> QueueEntry:
        """Append a new entry with ``retry_count=0``.

        Raises:
            StorageError: If the durable append fails.
        """
        entry = QueueEntry(
            id=str(uuid.uuid4()),
            task_id=task_id,
            operation=OperationKind(operation),
            data=data,
            created_at=utc_now(),
        )
        try:
            self.db.execute(
                f"INSERT INTO sync_queue ({_ENTRY_COLUMNS}) "
                "VALUES (?, ?, ?, ?, ?, 0, NULL)",
                (
                    entry.id,
                    entry.task_id,
                    entry.operation.value,
                    json.dumps(entry.data, default=str),
                    to_db_timestamp(entry.created_at),
                ),
            )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to enqueue {entry.operation.value} for task "
                f"{task_id}: {exc}"
            ) from exc
        logger.debug(
            "Enqueued %s %s for task %s",
            entry.operation.value,
            entry.id,
            task_id,
        )
        return entry

    def snapshot(self) -> list[QueueEntry]:
        """Return all entries, oldest first."""
        try:
            rows = self.db.fetchall(
                f"SELECT {_ENTRY_COLUMNS} FROM sync_queue "
                "ORDER BY created_at ASC, seq ASC"
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read sync queue: {exc}") from exc
        return [_row_to_entry(r) for r in rows]

    def get(self, entry_id: str) -> QueueEntry | None:
        try:
            row = self.db.fetchone(
                f"SELECT {_ENTRY_COLUMNS} FROM sync_queue WHERE id = ?",
                (entry_id,),
            )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to read queue entry {entry_id}: {exc}"
            ) from exc
        return _row_to_entry(row) if row else None

    def count(self) -> int:
        try:
            row = self.db.fetchone("SELECT COUNT(*) AS n FROM sync_queue")
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to count sync queue: {exc}") from exc
        return int(row["n"]) if row else 0

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def remove(self, entry_id: str) -> bool:
        """Delete one entry. Returns ``False`` when it was already gone."""
        try:
            removed = self.db.execute(
                "DELETE FROM sync_queue WHERE id = ?", (entry_id,)
            )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to remove queue entry {entry_id}: {exc}"
            ) from exc
        return removed > 0

    def remove_all_for_record(
        self, task_id: str, within: Collection[str] | None = None
    ) -> int:
        """Delete every entry targeting *task_id*; returns the count.

        Args:
            task_id: Task whose entries are cleared.
            within: Restrict the delete to these entry ids, typically a
                cycle's snapshot, so entries queued after it survive.
        """
        sql = "DELETE FROM sync_queue WHERE task_id = ?"
        params: list[Any] = [task_id]
        if within is not None:
            ids = list(within)
            if not ids:
                return 0
            sql += f" AND id IN ({', '.join('?' for _ in ids)})"
            params.extend(ids)
        try:
            removed = self.db.execute(sql, tuple(params))
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to clear queue for task {task_id}: {exc}"
            ) from exc
        if removed:
            logger.debug("Removed %d queue entries for task %s", removed, task_id)
        return removed

    def count_for_record(self, task_id: str) -> int:
        try:
            row = self.db.fetchone(
                "SELECT COUNT(*) AS n FROM sync_queue WHERE task_id = ?",
                (task_id,),
            )
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to count queue entries for task {task_id}: {exc}"
            ) from exc
        return int(row["n"]) if row else 0

    def increment_retry(self, entry_id: str, error_text: str) -> int | None:
        """Bump the retry count and record *error_text*.

        Returns:
            The new retry count, or ``None`` if the entry no longer exists.
        """
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    "UPDATE sync_queue "
                    "SET retry_count = retry_count + 1, error_message = ? "
                    "WHERE id = ?",
                    (error_text, entry_id),
                )
                if cursor.rowcount == 0:
                    return None
                row = conn.execute(
                    "SELECT retry_count FROM sync_queue WHERE id = ?",
                    (entry_id,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to record retry for {entry_id}: {exc}"
            ) from exc
        return int(row["retry_count"])

    # ------------------------------------------------------------------
    # Dead entries
    # ------------------------------------------------------------------

    def move_to_dead(self, entry_id: str) -> DeadEntry | None:
        """Move an entry into ``dead_entries``.

        Returns:
            The parked entry, or ``None`` if it was not in the queue.
        """
        failed_at = utc_now()
        try:
            with self.db.transaction() as conn:
                row = conn.execute(
                    f"SELECT {_ENTRY_COLUMNS} FROM sync_queue WHERE id = ?",
                    (entry_id,),
                ).fetchone()
                if row is None:
                    return None
                conn.execute(
                    f"INSERT OR REPLACE INTO dead_entries "
                    f"({_ENTRY_COLUMNS}, failed_at) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    (*tuple(row), to_db_timestamp(failed_at)),
                )
                conn.execute("DELETE FROM sync_queue WHERE id = ?", (entry_id,))
        except sqlite3.Error as exc:
            raise StorageError(
                f"Failed to dead-letter queue entry {entry_id}: {exc}"
            ) from exc
        return _row_to_dead({**dict(row), "failed_at": to_db_timestamp(failed_at)})

    def list_dead(self) -> list[DeadEntry]:
        try:
            rows = self.db.fetchall(
                f"SELECT {_ENTRY_COLUMNS}, failed_at FROM dead_entries "
                "ORDER BY failed_at ASC"
            )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to read dead entries: {exc}") from exc
        return [_row_to_dead(r) for r in rows]

    def requeue_dead(self, entry_ids: Iterable[str] | None = None) -> int:
        """Move dead entries back into the queue with a fresh retry count.

        Entries keep their original ``created_at`` so they return to their
        place in FIFO order.

        Args:
            entry_ids: Entries to requeue; all dead entries when ``None``.

        Returns:
            Number of entries requeued.
        """
        try:
            with self.db.transaction() as conn:
                if entry_ids is None:
                    rows = conn.execute(
                        f"SELECT {_ENTRY_COLUMNS} FROM dead_entries "
                        "ORDER BY created_at ASC"
                    ).fetchall()
                else:
                    ids = list(entry_ids)
                    if not ids:
                        return 0
                    placeholders = ", ".join("?" for _ in ids)
                    rows = conn.execute(
                        f"SELECT {_ENTRY_COLUMNS} FROM dead_entries "
                        f"WHERE id IN ({placeholders}) ORDER BY created_at ASC",
                        ids,
                    ).fetchall()
                for row in rows:
                    conn.execute(
                        f"INSERT INTO sync_queue ({_ENTRY_COLUMNS}) "
                        "VALUES (?, ?, ?, ?, ?, 0, NULL)",
                        (
                            row["id"],
                            row["task_id"],
                            row["operation"],
                            row["data"],
                            row["created_at"],
                        ),
                    )
                    conn.execute(
                        "DELETE FROM dead_entries WHERE id = ?", (row["id"],)
                    )
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to requeue dead entries: {exc}") from exc
        if rows:
            logger.info("Requeued %d dead entries", len(rows))
        return len(rows)
