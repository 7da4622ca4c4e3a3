"""Offline-first sync engine.

Public API for reconciling locally queued task mutations with a remote
authority once it becomes reachable.

Architecture
------------
Every local mutation is appended to a durable **mutation queue**.  A sync
cycle probes the remote, snapshots the queue, sends it in ordered batches
and settles each per-entry outcome.  Delivery is at-least-once; settlement
is keyed by task id, so replays are harmless.

Modules:

- ``engine``       -- ``SyncEngine``: orchestrates one sync cycle.
- ``queue``        -- ``MutationQueue``: durable FIFO of pending mutations.
- ``batcher``      -- ``partition``: bounded, ordered batches.
- ``connectivity`` -- ``ConnectivityGate``: remote reachability probe.
- ``dispatcher``   -- ``RemoteDispatcher``: one ``POST /sync/batch`` per call.
- ``resolver``     -- Conflict resolution strategies (last-write-wins,
  local-wins, remote-wins).
- ``ledger``       -- ``RetryLedger``: failure counts and expiry.
- ``reconciler``   -- ``StatusReconciler``: applies outcomes to the store.
- ``observer``     -- ``SyncObserver`` protocol and ``LoggingObserver``.
- ``repository``   -- ``TaskRepository``: record-store capabilities.
- ``models``       -- Pydantic data contracts.
- ``errors``       -- ``SyncError`` hierarchy.
- ``reporter``     -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from task_sync.config import load_config
    from task_sync.core import Database, RemoteClient
    from task_sync.store import TaskStore
    from task_sync.sync import MutationQueue, SyncEngine, format_cycle_result

    config = load_config()
    db = Database(config.db_path)
    queue = MutationQueue(db)
    store = TaskStore(db, queue)

    store.create_task("Write report")

    engine = SyncEngine.from_config(
        config, queue, store, RemoteClient(config)
    )
    result = await engine.run()
    print(format_cycle_result(result))
"""

from .batcher import partition
from .engine import SyncEngine
from .errors import ConnectivityError, StorageError, SyncError, TransportError
from .models import (
    CycleResult,
    DeadEntry,
    OperationKind,
    Outcome,
    OutcomeStatus,
    QueueEntry,
    StatusReport,
    SyncErrorItem,
    SyncStatus,
    Task,
)
from .observer import LoggingObserver, SyncObserver
from .queue import MutationQueue
from .reporter import (
    format_cycle_result,
    format_dead_entries,
    format_status,
    result_to_json,
    status_to_json,
)
from .resolver import create_resolver

__all__ = [
    "ConnectivityError",
    "CycleResult",
    "DeadEntry",
    "LoggingObserver",
    "MutationQueue",
    "OperationKind",
    "Outcome",
    "OutcomeStatus",
    "QueueEntry",
    "StatusReport",
    "StorageError",
    "SyncEngine",
    "SyncError",
    "SyncErrorItem",
    "SyncObserver",
    "SyncStatus",
    "Task",
    "TransportError",
    "create_resolver",
    "format_cycle_result",
    "format_dead_entries",
    "format_status",
    "partition",
    "result_to_json",
    "status_to_json",
]
