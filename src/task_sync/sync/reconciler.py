"""Apply per-entry dispatch outcomes to the record store.

Settlement is record-scoped: a success for any entry of a task clears every
queued entry for that task, so replaying a success is harmless.  When the
engine passes its snapshot, only entries from that snapshot are cleared;
a task edited mid-cycle keeps its newer entries and stays ``pending``.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any

from pydantic import ValidationError

from task_sync.sync.ledger import RetryLedger
from task_sync.sync.models import (
    ConflictResolvedEvent,
    Outcome,
    OutcomeStatus,
    QueueEntry,
    SyncStatus,
    Task,
    utc_now,
)
from task_sync.sync.observer import LoggingObserver, SyncObserver
from task_sync.sync.queue import MutationQueue
from task_sync.sync.repository import TaskRepository
from task_sync.sync.resolver import ConflictResolver, LastWriteWinsResolver

logger = logging.getLogger(__name__)

UNKNOWN_ERROR = "unknown remote error"
CONFLICT_WITHOUT_DATA = "conflict reported without usable resolved data"

# Fields the remote version may not override locally.
_LOCAL_ONLY_FIELDS = frozenset({"id", "sync_status", "last_synced_at"})


def failure_text(outcome: Outcome) -> str:
    """Error text recorded when *outcome* is settled as a failure."""
    if outcome.status is OutcomeStatus.CONFLICT:
        return outcome.error or CONFLICT_WITHOUT_DATA
    return outcome.error or UNKNOWN_ERROR


def _server_id(outcome: Outcome) -> str | None:
    if outcome.server_id:
        return outcome.server_id
    if outcome.resolved_data:
        value = outcome.resolved_data.get("server_id")
        return str(value) if value else None
    return None


def materialize_remote(local: Task, resolved_data: dict[str, Any]) -> Task:
    """Build the full remote version by overlaying *resolved_data* on *local*.

    Raises:
        ValidationError: If the remote data does not form a valid task.
    """
    overlay = {
        key: value
        for key, value in resolved_data.items()
        if key in Task.model_fields and key not in _LOCAL_ONLY_FIELDS
    }
    return Task.model_validate({**local.model_dump(), **overlay})


class StatusReconciler:
    """Route one outcome to the store, the resolver or the retry ledger.

    Args:
        repository: Record store capabilities.
        queue: The mutation queue.
        ledger: Failure bookkeeping for ``error`` outcomes.
        resolver: Conflict policy; last-write-wins by default.
        observer: Receives ``conflict_resolved`` events.
    """

    def __init__(
        self,
        repository: TaskRepository,
        queue: MutationQueue,
        ledger: RetryLedger,
        resolver: ConflictResolver | None = None,
        observer: SyncObserver | None = None,
    ) -> None:
        self.repository = repository
        self.queue = queue
        self.ledger = ledger
        self.resolver = resolver or LastWriteWinsResolver()
        self.observer = observer or LoggingObserver()

    def settle(
        self,
        entry: QueueEntry,
        outcome: Outcome,
        snapshot: Collection[str] | None = None,
    ) -> OutcomeStatus:
        """Apply *outcome* for *entry* and return the effective status.

        A conflict that cannot be resolved is reported as ``error``.

        Args:
            entry: The dispatched queue entry.
            outcome: The remote's verdict for it.
            snapshot: Ids of the entries the current cycle works on.  Only
                these are cleared on success; ``None`` clears every entry
                for the task.
        """
        if outcome.status is OutcomeStatus.SUCCESS:
            self._mark_synced(entry.task_id, _server_id(outcome), snapshot)
            return OutcomeStatus.SUCCESS

        if outcome.status is OutcomeStatus.CONFLICT:
            return self._settle_conflict(entry, outcome, snapshot)

        self.ledger.record_failure(entry.id, failure_text(outcome))
        return OutcomeStatus.ERROR

    def _settle_conflict(
        self,
        entry: QueueEntry,
        outcome: Outcome,
        snapshot: Collection[str] | None,
    ) -> OutcomeStatus:
        if not outcome.resolved_data:
            logger.warning(
                "Conflict for task %s carried no resolved data", entry.task_id
            )
            self.ledger.record_failure(entry.id, failure_text(outcome))
            return OutcomeStatus.ERROR

        local = self.repository.read(entry.task_id)
        if local is None:
            logger.warning(
                "Conflict for task %s which no longer exists locally; "
                "settling as success",
                entry.task_id,
            )
            self._mark_synced(entry.task_id, _server_id(outcome), snapshot)
            return OutcomeStatus.SUCCESS

        try:
            remote = materialize_remote(local, outcome.resolved_data)
        except ValidationError as exc:
            logger.warning(
                "Invalid remote version for task %s: %s", entry.task_id, exc
            )
            self.ledger.record_failure(entry.id, failure_text(outcome))
            return OutcomeStatus.ERROR

        winner = self.resolver.resolve(local, remote)
        chosen_side = "local" if winner is local else "remote"
        if chosen_side == "remote":
            self.repository.write(winner)

        self.observer.conflict_resolved(
            ConflictResolvedEvent(
                task_id=entry.task_id,
                chosen_side=chosen_side,
                local_updated_at=local.updated_at,
                remote_updated_at=remote.updated_at,
            )
        )
        self._mark_synced(entry.task_id, _server_id(outcome), snapshot)
        return OutcomeStatus.CONFLICT

    def _mark_synced(
        self,
        task_id: str,
        server_id: str | None,
        snapshot: Collection[str] | None,
    ) -> None:
        self.queue.remove_all_for_record(task_id, within=snapshot)
        status = SyncStatus.SYNCED
        if self.queue.count_for_record(task_id):
            logger.debug(
                "Task %s has newer queued edits; leaving it pending", task_id
            )
            status = SyncStatus.PENDING
        if not self.repository.mark_synced(
            task_id, server_id, utc_now(), status=status
        ):
            logger.debug("Task %s not found while marking synced", task_id)
