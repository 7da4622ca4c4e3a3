"""Pydantic models for the sync engine.

Defines the core data contracts used across all sync modules:

- ``Task``: The synchronised record.
- ``QueueEntry`` / ``DeadEntry``: Pending and expired mutations.
- ``Outcome``: Result of dispatching one queue entry.
- ``BatchSyncRequest`` / ``BatchSyncResponse`` / ``ProcessedItem``: Wire
  contract of the remote ``POST /sync/batch`` endpoint.
- ``SyncErrorItem`` / ``CycleResult``: Aggregate result of one sync cycle.
- ``StatusReport``: Pending-work summary for the status tool.
- ``ConflictResolvedEvent`` / ``EntryDroppedEvent``: Observer payloads.

All models are frozen (immutable); changes go through ``model_copy``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

GLOBAL_TASK_ID = "global"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _ensure_aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SyncStatus(str, Enum):
    """Synchronisation state of a task."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class OperationKind(str, Enum):
    """Kind of mutation recorded in the queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class OutcomeStatus(str, Enum):
    """Per-entry result reported by the remote authority."""

    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class Task(BaseModel):
    """A task as stored locally.

    Attributes:
        id: Client-assigned stable identifier.
        title: Short title.
        description: Free text body.
        completed: Completion flag.
        created_at: Creation time (UTC).
        updated_at: Last modification time (UTC); drives last-write-wins.
        is_deleted: Soft-delete flag.
        sync_status: pending / synced / error.
        server_id: Identifier assigned by the remote authority.
        last_synced_at: Time of the last successful settlement.
    """

    id: str
    title: str
    description: str = ""
    completed: bool = False
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False
    sync_status: SyncStatus = SyncStatus.PENDING
    server_id: str | None = None
    last_synced_at: datetime | None = None

    model_config = {"frozen": True}

    @field_validator("created_at", "updated_at", "last_synced_at")
    @classmethod
    def _aware(cls, value: datetime | None) -> datetime | None:
        return _ensure_aware(value)


class QueueEntry(BaseModel):
    """One pending mutation awaiting reconciliation.

    Attributes:
        id: Unique entry identifier.
        task_id: Target task identifier.
        operation: create / update / delete.
        data: Partial snapshot of the task fields the operation touched.
        created_at: Enqueue time; the queue is FIFO on this field.
        retry_count: Failed dispatch attempts so far.
        error_message: Text of the most recent failure.
    """

    id: str
    task_id: str
    operation: OperationKind
    data: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    retry_count: int = Field(default=0, ge=0)
    error_message: str | None = None

    model_config = {"frozen": True}

    @field_validator("created_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return _ensure_aware(value)  # type: ignore[return-value]


class DeadEntry(QueueEntry):
    """A queue entry that exceeded the retry cap, kept for inspection."""

    failed_at: datetime


# ---------------------------------------------------------------------------
# Dispatch outcomes and wire contract
# ---------------------------------------------------------------------------


class Outcome(BaseModel):
    """Result of dispatching one queue entry.

    Attributes:
        status: success / conflict / error.
        server_id: Remote identifier, when the authority assigned one.
        resolved_data: The remote version of the task (conflicts) or the
            accepted data (success).
        error: Failure text for ``error`` outcomes.
    """

    status: OutcomeStatus
    server_id: str | None = None
    resolved_data: dict[str, Any] | None = None
    error: str | None = None

    model_config = {"frozen": True}


class ProcessedItem(BaseModel):
    """One element of ``processed_items`` in a batch response."""

    client_id: str
    server_id: str | None = None
    status: OutcomeStatus
    resolved_data: dict[str, Any] | None = None
    error: str | None = None

    model_config = {"frozen": True}

    def to_outcome(self) -> Outcome:
        return Outcome(
            status=self.status,
            server_id=self.server_id,
            resolved_data=self.resolved_data,
            error=self.error,
        )


class BatchSyncRequest(BaseModel):
    """Body of ``POST /sync/batch``."""

    items: list[QueueEntry]
    client_timestamp: datetime

    model_config = {"frozen": True}


class BatchSyncResponse(BaseModel):
    """Response of ``POST /sync/batch``."""

    processed_items: list[ProcessedItem]
    server_timestamp: datetime | None = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Cycle results
# ---------------------------------------------------------------------------


class SyncErrorItem(BaseModel):
    """One itemised failure in a cycle result.

    A cycle-level failure uses ``task_id="global"`` and ``operation="sync"``.
    """

    task_id: str
    operation: str
    error: str
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = {"frozen": True}


class CycleResult(BaseModel):
    """Aggregate of one sync invocation.

    Attributes:
        success: True when no item failed.
        synced_items: Entries settled (success or resolved conflict).
        failed_items: Entries that failed, including whole failed batches.
        errors: Itemised failures in processing order.
    """

    success: bool
    synced_items: int = 0
    failed_items: int = 0
    errors: list[SyncErrorItem] = []

    model_config = {"frozen": True}

    @classmethod
    def global_failure(cls, message: str) -> CycleResult:
        """Result for a cycle that could not run at all."""
        return cls(
            success=False,
            errors=[
                SyncErrorItem(
                    task_id=GLOBAL_TASK_ID, operation="sync", error=message
                )
            ],
        )


class StatusReport(BaseModel):
    """Summary of outstanding sync work.

    Attributes:
        pending: Tasks whose sync status is pending or error.
        last_synced_at: Most recent settlement time across all tasks.
        online: Whether the remote authority answered the probe.
        status: offline / sync_pending / up_to_date.
    """

    pending: int
    last_synced_at: datetime | None = None
    online: bool
    status: Literal["offline", "sync_pending", "up_to_date"]

    model_config = {"frozen": True}

    @classmethod
    def derive(
        cls, pending: int, last_synced_at: datetime | None, online: bool
    ) -> StatusReport:
        if not online:
            status = "offline"
        elif pending > 0:
            status = "sync_pending"
        else:
            status = "up_to_date"
        return cls(
            pending=pending,
            last_synced_at=last_synced_at,
            online=online,
            status=status,
        )


# ---------------------------------------------------------------------------
# Observer events
# ---------------------------------------------------------------------------


class ConflictResolvedEvent(BaseModel):
    """Emitted after a conflict outcome was resolved and persisted."""

    task_id: str
    chosen_side: Literal["local", "remote"]
    local_updated_at: datetime
    remote_updated_at: datetime

    model_config = {"frozen": True}


class EntryDroppedEvent(BaseModel):
    """Emitted when an entry exceeds the retry cap and leaves the queue."""

    task_id: str
    entry_id: str
    final_error: str
    retry_count: int
    dead_lettered: bool

    model_config = {"frozen": True}
