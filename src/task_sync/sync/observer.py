"""Sync event observers.

The engine reports noteworthy per-entry events through a ``SyncObserver``
instead of logging them directly, so embedding applications can route them
elsewhere.  ``LoggingObserver`` is the default and emits structured log
records; ``JsonFormatter`` renders the ``event`` attribute as a field.
"""

from __future__ import annotations

import logging
from typing import Protocol

from task_sync.sync.models import ConflictResolvedEvent, EntryDroppedEvent

logger = logging.getLogger(__name__)


class SyncObserver(Protocol):
    """Receiver for sync events."""

    def conflict_resolved(self, event: ConflictResolvedEvent) -> None:
        ...  # pragma: no cover

    def entry_dropped(self, event: EntryDroppedEvent) -> None:
        ...  # pragma: no cover


class LoggingObserver:
    """Log each event with its payload attached as ``record.event``."""

    def conflict_resolved(self, event: ConflictResolvedEvent) -> None:
        logger.info(
            "Conflict on task %s resolved in favour of %s",
            event.task_id,
            event.chosen_side,
            extra={
                "event": {
                    "type": "conflict_resolved",
                    **event.model_dump(mode="json"),
                }
            },
        )

    def entry_dropped(self, event: EntryDroppedEvent) -> None:
        logger.warning(
            "Dropped queue entry %s for task %s after %d failures: %s",
            event.entry_id,
            event.task_id,
            event.retry_count,
            event.final_error,
            extra={
                "event": {
                    "type": "entry_dropped",
                    **event.model_dump(mode="json"),
                }
            },
        )
