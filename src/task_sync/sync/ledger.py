"""Per-entry failure bookkeeping.

Each failed dispatch bumps the entry's retry count.  Once the count
exceeds ``max_retries`` the entry leaves the queue: it is parked in the
dead-entry table, or deleted outright when dead-lettering is disabled.
The task's own sync status is never touched here.
"""

from __future__ import annotations

import logging

from task_sync.sync.models import EntryDroppedEvent
from task_sync.sync.observer import LoggingObserver, SyncObserver
from task_sync.sync.queue import MutationQueue

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3


class RetryLedger:
    """Track failures and expire entries past the retry cap.

    Args:
        queue: The mutation queue holding the entries.
        max_retries: Failures tolerated before an entry is dropped.
        dead_letter: Park dropped entries instead of deleting them.
        observer: Receives ``entry_dropped`` events.
    """

    def __init__(
        self,
        queue: MutationQueue,
        max_retries: int = DEFAULT_MAX_RETRIES,
        dead_letter: bool = True,
        observer: SyncObserver | None = None,
    ) -> None:
        self.queue = queue
        self.max_retries = max_retries
        self.dead_letter = dead_letter
        self.observer = observer or LoggingObserver()

    def record_failure(self, entry_id: str, error_text: str) -> int | None:
        """Record one failed attempt for *entry_id*.

        Returns:
            The new retry count, or ``None`` when the entry was already
            removed from the queue (for example settled by a sibling entry
            for the same task).
        """
        entry = self.queue.get(entry_id)
        count = self.queue.increment_retry(entry_id, error_text)
        if count is None or entry is None:
            logger.debug(
                "Failure for %s ignored: entry no longer queued", entry_id
            )
            return None

        if count <= self.max_retries:
            logger.debug(
                "Entry %s failed (%d/%d): %s",
                entry_id,
                count,
                self.max_retries,
                error_text,
            )
            return count

        if self.dead_letter:
            self.queue.move_to_dead(entry_id)
        else:
            self.queue.remove(entry_id)

        self.observer.entry_dropped(
            EntryDroppedEvent(
                task_id=entry.task_id,
                entry_id=entry_id,
                final_error=error_text,
                retry_count=count,
                dead_lettered=self.dead_letter,
            )
        )
        return count
