"""Record-store capabilities the sync engine depends on.

The engine only needs to read tasks (including soft-deleted ones), write a
conflict winner, and update sync bookkeeping.  ``task_sync.store.TaskStore``
satisfies this protocol structurally.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from task_sync.sync.models import SyncStatus, Task


class TaskRepository(Protocol):
    def read(self, task_id: str) -> Task | None:
        """Return the task, soft-deleted or not, or ``None``."""
        ...  # pragma: no cover

    def write(self, task: Task) -> None:
        """Persist *task* as-is without enqueueing a mutation."""
        ...  # pragma: no cover

    def mark_synced(
        self,
        task_id: str,
        server_id: str | None,
        synced_at: datetime,
        status: SyncStatus = SyncStatus.SYNCED,
    ) -> bool:
        """Set *status* and the sync time; keep the existing server id when *server_id* is None."""
        ...  # pragma: no cover

    def list_needing_sync(self) -> list[Task]:
        """Tasks whose status is ``pending`` or ``error``."""
        ...  # pragma: no cover

    def last_synced_at(self) -> datetime | None:
        ...  # pragma: no cover
