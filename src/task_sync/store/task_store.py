"""Local task store backed by SQLite.

Every mutating call re-stamps ``updated_at``, sets ``sync_status`` to
pending and appends a mutation to the sync queue.  Deletes are soft: the
row stays, flagged ``is_deleted``, so the engine can still reconcile it.

The store only needs something that can append mutations
(``QueueAppender``); it never reaches into the sync engine itself.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Protocol

from task_sync.core.database import (
    Database,
    from_db_timestamp,
    to_db_timestamp,
)
from task_sync.sync.errors import StorageError
from task_sync.sync.models import OperationKind, SyncStatus, Task, utc_now
from task_sync.validators import validate_description, validate_title

logger = logging.getLogger(__name__)

_TASK_COLUMNS = (
    "id, title, description, completed, created_at, updated_at, "
    "is_deleted, sync_status, server_id, last_synced_at"
)

# Fields carried in a create mutation.
_CONTENT_FIELDS = {
    "id",
    "title",
    "description",
    "completed",
    "created_at",
    "updated_at",
    "is_deleted",
}


class QueueAppender(Protocol):
    def enqueue(
        self, task_id: str, operation: OperationKind, data: dict[str, Any]
    ) -> Any:
        ...  # pragma: no cover


def _row_to_task(row: dict[str, Any]) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        completed=bool(row["completed"]),
        created_at=from_db_timestamp(row["created_at"]),
        updated_at=from_db_timestamp(row["updated_at"]),
        is_deleted=bool(row["is_deleted"]),
        sync_status=SyncStatus(row["sync_status"]),
        server_id=row["server_id"],
        last_synced_at=from_db_timestamp(row["last_synced_at"]),
    )


def _task_params(task: Task) -> tuple:
    return (
        task.title,
        task.description,
        int(task.completed),
        to_db_timestamp(task.created_at),
        to_db_timestamp(task.updated_at),
        int(task.is_deleted),
        task.sync_status.value,
        task.server_id,
        to_db_timestamp(task.last_synced_at) if task.last_synced_at else None,
        task.id,
    )


def _check(result: tuple[bool, str]) -> None:
    is_valid, message = result
    if not is_valid:
        raise ValueError(message)


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StorageError(f"Failed to {action}: {exc}") from exc


class TaskStore:
    """CRUD for tasks plus the sync bookkeeping the engine needs.

    Args:
        db: Shared database handle.
        queue: Receives one mutation per create, update or delete.
    """

    def __init__(self, db: Database, queue: QueueAppender) -> None:
        self.db = db
        self.queue = queue

    # ------------------------------------------------------------------
    # Active read paths (soft-deleted tasks hidden)
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task | None:
        task = self.read(task_id)
        if task is None or task.is_deleted:
            return None
        return task

    def list_tasks(self, include_completed: bool = True) -> list[Task]:
        sql = f"SELECT {_TASK_COLUMNS} FROM tasks WHERE is_deleted = 0"
        if not include_completed:
            sql += " AND completed = 0"
        sql += " ORDER BY created_at ASC"
        with _storage_errors("list tasks"):
            rows = self.db.fetchall(sql)
        return [_row_to_task(r) for r in rows]

    # ------------------------------------------------------------------
    # Mutations (each enqueues)
    # ------------------------------------------------------------------

    def create_task(
        self,
        title: str,
        description: str = "",
        task_id: str | None = None,
        completed: bool = False,
    ) -> Task:
        """Insert a new pending task and enqueue a ``create`` mutation.

        Raises:
            ValueError: If the title or description is invalid, or
                *task_id* is already taken.
            StorageError: If the insert or the enqueue fails.
        """
        _check(validate_title(title))
        _check(validate_description(description))

        now = utc_now()
        task = Task(
            id=task_id or str(uuid.uuid4()),
            title=title.strip(),
            description=description,
            completed=completed,
            created_at=now,
            updated_at=now,
        )
        try:
            self.db.execute(
                "INSERT INTO tasks (title, description, completed, created_at, "
                "updated_at, is_deleted, sync_status, server_id, "
                "last_synced_at, id) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                _task_params(task),
            )
        except sqlite3.IntegrityError:
            raise ValueError(f"Task {task.id} already exists") from None
        except sqlite3.Error as exc:
            raise StorageError(f"Failed to create task: {exc}") from exc

        self.queue.enqueue(
            task.id,
            OperationKind.CREATE,
            task.model_dump(mode="json", include=_CONTENT_FIELDS),
        )
        logger.info("Created task %s", task.id)
        return task

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        completed: bool | None = None,
    ) -> Task | None:
        """Apply a partial update and enqueue an ``update`` mutation.

        Only the supplied fields (plus ``updated_at``) are carried in the
        queued payload.

        Returns:
            The updated task, or ``None`` if it does not exist or is deleted.
        """
        current = self.get_task(task_id)
        if current is None:
            return None

        changes: dict[str, Any] = {}
        if title is not None:
            _check(validate_title(title))
            changes["title"] = title.strip()
        if description is not None:
            _check(validate_description(description))
            changes["description"] = description
        if completed is not None:
            changes["completed"] = completed

        changes["updated_at"] = utc_now()
        updated = current.model_copy(
            update={**changes, "sync_status": SyncStatus.PENDING}
        )
        self.write(updated)

        payload = {
            key: (to_db_timestamp(value) if isinstance(value, datetime) else value)
            for key, value in changes.items()
        }
        self.queue.enqueue(task_id, OperationKind.UPDATE, payload)
        logger.info("Updated task %s (%s)", task_id, ", ".join(sorted(changes)))
        return updated

    def delete_task(self, task_id: str) -> bool:
        """Soft-delete a task and enqueue a ``delete`` mutation.

        Returns:
            ``False`` if the task does not exist or is already deleted.
        """
        with _storage_errors(f"delete task {task_id}"):
            changed = self.db.execute(
                "UPDATE tasks SET is_deleted = 1, updated_at = ?, "
                "sync_status = ? WHERE id = ? AND is_deleted = 0",
                (
                    to_db_timestamp(utc_now()),
                    SyncStatus.PENDING.value,
                    task_id,
                ),
            )
        if not changed:
            return False
        self.queue.enqueue(task_id, OperationKind.DELETE, {"id": task_id})
        logger.info("Deleted task %s", task_id)
        return True

    # ------------------------------------------------------------------
    # Sync capabilities
    # ------------------------------------------------------------------

    def read(self, task_id: str) -> Task | None:
        """Return the task including soft-deleted ones."""
        with _storage_errors(f"read task {task_id}"):
            row = self.db.fetchone(
                f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
            )
        return _row_to_task(row) if row else None

    def write(self, task: Task) -> None:
        """Overwrite every stored field of *task*; nothing is enqueued."""
        with _storage_errors(f"write task {task.id}"):
            self.db.execute(
                "UPDATE tasks SET title = ?, description = ?, completed = ?, "
                "created_at = ?, updated_at = ?, is_deleted = ?, "
                "sync_status = ?, server_id = ?, last_synced_at = ? "
                "WHERE id = ?",
                _task_params(task),
            )

    def mark_synced(
        self,
        task_id: str,
        server_id: str | None,
        synced_at: datetime,
        status: SyncStatus = SyncStatus.SYNCED,
    ) -> bool:
        """Record an acknowledged push.

        *status* stays ``pending`` when newer edits are still queued.
        """
        with _storage_errors(f"mark task {task_id} synced"):
            changed = self.db.execute(
                "UPDATE tasks SET sync_status = ?, "
                "server_id = COALESCE(?, server_id), last_synced_at = ? "
                "WHERE id = ?",
                (
                    SyncStatus(status).value,
                    server_id,
                    to_db_timestamp(synced_at),
                    task_id,
                ),
            )
        return changed > 0

    def list_needing_sync(self) -> list[Task]:
        with _storage_errors("list tasks needing sync"):
            rows = self.db.fetchall(
                f"SELECT {_TASK_COLUMNS} FROM tasks "
                "WHERE sync_status IN (?, ?) ORDER BY updated_at ASC",
                (SyncStatus.PENDING.value, SyncStatus.ERROR.value),
            )
        return [_row_to_task(r) for r in rows]

    def last_synced_at(self) -> datetime | None:
        with _storage_errors("read last sync time"):
            row = self.db.fetchone(
                "SELECT MAX(last_synced_at) AS last FROM tasks"
            )
        return from_db_timestamp(row["last"]) if row else None
