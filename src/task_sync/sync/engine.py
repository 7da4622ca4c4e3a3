"""Sync cycle orchestrator.

The ``SyncEngine`` ties together the connectivity gate, mutation queue,
batcher, dispatcher and reconciler into one sync cycle.  It:

1. Probes the remote authority; an unreachable remote ends the cycle.
2. Snapshots the queue (entries added later wait for the next cycle).
3. Partitions the snapshot into batches.
4. Dispatches batches one at a time.
5. Settles each outcome (success, conflict or error).
6. Aggregates a ``CycleResult``.

Error handling is per-entry: one failing entry or batch does not abort the
cycle, and no exception ever reaches the caller.  Blocking work runs in
worker threads via ``run_sync``.
"""

from __future__ import annotations

import asyncio
import logging

from task_sync.config import Config
from task_sync.core.async_utils import run_sync
from task_sync.core.client import RemoteClient
from task_sync.sync.batcher import partition
from task_sync.sync.connectivity import ConnectivityGate
from task_sync.sync.dispatcher import RemoteDispatcher
from task_sync.sync.errors import ConnectivityError, SyncError, TransportError
from task_sync.sync.ledger import RetryLedger
from task_sync.sync.models import (
    CycleResult,
    OutcomeStatus,
    QueueEntry,
    StatusReport,
    SyncErrorItem,
)
from task_sync.sync.observer import LoggingObserver, SyncObserver
from task_sync.sync.queue import MutationQueue
from task_sync.sync.reconciler import StatusReconciler, failure_text
from task_sync.sync.repository import TaskRepository
from task_sync.sync.resolver import create_resolver

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Remote authority is unreachable"


def _error_item(entry: QueueEntry, error: str) -> SyncErrorItem:
    return SyncErrorItem(
        task_id=entry.task_id, operation=entry.operation.value, error=error
    )


class SyncEngine:
    """Run sync cycles for one local store.

    Args:
        queue: The mutation queue.
        repository: Record store capabilities.
        gate: Connectivity probe.
        dispatcher: Batch transport.
        reconciler: Outcome settlement.
        ledger: Failure bookkeeping for whole failed batches.
        batch_size: Maximum entries per dispatched batch.
    """

    def __init__(
        self,
        queue: MutationQueue,
        repository: TaskRepository,
        gate: ConnectivityGate,
        dispatcher: RemoteDispatcher,
        reconciler: StatusReconciler,
        ledger: RetryLedger,
        batch_size: int = 10,
    ) -> None:
        if batch_size <= 0:
            raise ValueError(
                f"Invalid batch size {batch_size}: must be a positive integer"
            )
        self.queue = queue
        self.repository = repository
        self.gate = gate
        self.dispatcher = dispatcher
        self.reconciler = reconciler
        self.ledger = ledger
        self.batch_size = batch_size
        self._cycle_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: Config,
        queue: MutationQueue,
        repository: TaskRepository,
        client: RemoteClient,
        observer: SyncObserver | None = None,
    ) -> SyncEngine:
        """Wire all collaborators from runtime configuration."""
        observer = observer or LoggingObserver()
        ledger = RetryLedger(
            queue,
            max_retries=config.max_retries,
            dead_letter=config.dead_letter,
            observer=observer,
        )
        reconciler = StatusReconciler(
            repository,
            queue,
            ledger,
            resolver=create_resolver(config.conflict_strategy),
            observer=observer,
        )
        return cls(
            queue=queue,
            repository=repository,
            gate=ConnectivityGate(client, timeout=config.probe_timeout),
            dispatcher=RemoteDispatcher(client, timeout=config.batch_timeout),
            reconciler=reconciler,
            ledger=ledger,
            batch_size=config.batch_size,
        )

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def run(self) -> CycleResult:
        """Execute one sync cycle.

        Concurrent callers are serialised; a second call waits for the
        running cycle and then runs its own.

        Returns:
            A ``CycleResult``.  Cycle-level failures produce
            ``success=False`` with a single ``global`` error item.
        """
        async with self._cycle_lock:
            try:
                result = await self._run_cycle()
            except ConnectivityError as exc:
                logger.info("Sync skipped: %s", exc)
                return CycleResult.global_failure(str(exc))
            except Exception as exc:
                logger.exception("Sync cycle failed")
                return CycleResult.global_failure(f"Sync failed: {exc}")

        logger.info(
            "Sync cycle finished: %d synced, %d failed",
            result.synced_items,
            result.failed_items,
        )
        return result

    async def _run_cycle(self) -> CycleResult:
        if not await run_sync(self.gate.probe):
            raise ConnectivityError(OFFLINE_MESSAGE)

        entries = await run_sync(self.queue.snapshot)
        if not entries:
            logger.debug("Sync queue empty, nothing to do")
            return CycleResult(success=True)

        snapshot_ids = frozenset(entry.id for entry in entries)
        batches = partition(entries, self.batch_size)
        logger.info(
            "Syncing %d queued entries in %d batch(es)",
            len(entries),
            len(batches),
        )

        synced = 0
        failed = 0
        errors: list[SyncErrorItem] = []

        for index, batch in enumerate(batches, start=1):
            try:
                outcomes = await run_sync(self.dispatcher.dispatch, batch)
            except TransportError as exc:
                logger.warning(
                    "Batch %d/%d failed: %s", index, len(batches), exc
                )
                failed += len(batch)
                for entry in batch:
                    error = str(exc)
                    try:
                        await run_sync(
                            self.ledger.record_failure, entry.id, error
                        )
                    except SyncError as ledger_exc:
                        logger.error(
                            "Failed to record failure for entry %s: %s",
                            entry.id,
                            ledger_exc,
                        )
                        error = f"{error}; {ledger_exc}"
                    errors.append(_error_item(entry, error))
                continue

            for entry in batch:
                outcome = outcomes[entry.id]
                try:
                    status = await run_sync(
                        self.reconciler.settle, entry, outcome, snapshot_ids
                    )
                except SyncError as exc:
                    logger.error(
                        "Failed to settle entry %s for task %s: %s",
                        entry.id,
                        entry.task_id,
                        exc,
                    )
                    failed += 1
                    errors.append(_error_item(entry, str(exc)))
                    continue

                if status is OutcomeStatus.ERROR:
                    failed += 1
                    errors.append(_error_item(entry, failure_text(outcome)))
                else:
                    synced += 1

        return CycleResult(
            success=failed == 0,
            synced_items=synced,
            failed_items=failed,
            errors=errors,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_status(self) -> StatusReport:
        """Summarise pending work and current reachability."""
        online = await run_sync(self.gate.probe)
        pending = await run_sync(self.repository.list_needing_sync)
        last_synced_at = await run_sync(self.repository.last_synced_at)
        return StatusReport.derive(
            pending=len(pending),
            last_synced_at=last_synced_at,
            online=online,
        )
