"""Tests for task_sync.sync.queue.MutationQueue against a real SQLite file."""

import sqlite3
from unittest.mock import patch

import pytest

from task_sync.sync.errors import StorageError
from task_sync.sync.models import DeadEntry, OperationKind


class TestEnqueueAndSnapshot:
    def test_enqueue_returns_fresh_entry(self, queue):
        entry = queue.enqueue("t1", OperationKind.CREATE, {"title": "A"})

        assert entry.task_id == "t1"
        assert entry.operation is OperationKind.CREATE
        assert entry.retry_count == 0
        assert entry.error_message is None
        assert entry.created_at.tzinfo is not None

    def test_accepts_operation_string(self, queue):
        entry = queue.enqueue("t1", "update", {})
        assert entry.operation is OperationKind.UPDATE

    def test_snapshot_is_fifo(self, queue):
        ids = [
            queue.enqueue(f"t{i}", OperationKind.UPDATE, {"n": i}).id
            for i in range(5)
        ]

        assert [e.id for e in queue.snapshot()] == ids

    def test_data_round_trips(self, queue):
        queue.enqueue("t1", OperationKind.UPDATE, {"title": "x", "completed": True})

        (entry,) = queue.snapshot()
        assert entry.data == {"title": "x", "completed": True}

    def test_snapshot_is_a_copy(self, queue):
        queue.enqueue("t1", OperationKind.CREATE, {})
        snap = queue.snapshot()
        queue.enqueue("t2", OperationKind.CREATE, {})

        assert len(snap) == 1
        assert queue.count() == 2

    def test_get_missing(self, queue):
        assert queue.get("nope") is None

    def test_survives_reopen(self, tmp_path):
        from task_sync.core.database import Database
        from task_sync.sync.queue import MutationQueue

        path = tmp_path / "persist.db"
        first = Database(path)
        entry = MutationQueue(first).enqueue("t1", OperationKind.DELETE, {"id": "t1"})
        first.close()

        second = Database(path)
        try:
            assert [e.id for e in MutationQueue(second).snapshot()] == [entry.id]
        finally:
            second.close()


class TestRemoval:
    def test_remove(self, queue):
        entry = queue.enqueue("t1", OperationKind.CREATE, {})

        assert queue.remove(entry.id) is True
        assert queue.remove(entry.id) is False
        assert queue.count() == 0

    def test_remove_all_for_record(self, queue):
        queue.enqueue("t1", OperationKind.CREATE, {})
        queue.enqueue("t1", OperationKind.UPDATE, {})
        keep = queue.enqueue("t2", OperationKind.CREATE, {})

        assert queue.remove_all_for_record("t1") == 2
        assert [e.id for e in queue.snapshot()] == [keep.id]
        assert queue.remove_all_for_record("t1") == 0

    def test_remove_all_for_record_within_snapshot(self, queue):
        old = queue.enqueue("t1", OperationKind.CREATE, {})
        newer = queue.enqueue("t1", OperationKind.UPDATE, {"title": "x"})

        assert queue.remove_all_for_record("t1", within={old.id}) == 1
        assert [e.id for e in queue.snapshot()] == [newer.id]
        assert queue.remove_all_for_record("t1", within=set()) == 0
        assert queue.count_for_record("t1") == 1

    def test_count_for_record(self, queue):
        queue.enqueue("t1", OperationKind.CREATE, {})
        queue.enqueue("t1", OperationKind.UPDATE, {})
        queue.enqueue("t2", OperationKind.CREATE, {})

        assert queue.count_for_record("t1") == 2
        assert queue.count_for_record("missing") == 0


class TestRetries:
    def test_increment_retry(self, queue):
        entry = queue.enqueue("t1", OperationKind.CREATE, {})

        assert queue.increment_retry(entry.id, "boom") == 1
        assert queue.increment_retry(entry.id, "boom again") == 2

        stored = queue.get(entry.id)
        assert stored.retry_count == 2
        assert stored.error_message == "boom again"

    def test_increment_missing_entry(self, queue):
        assert queue.increment_retry("gone", "x") is None


class TestDeadEntries:
    def test_move_to_dead(self, queue):
        entry = queue.enqueue("t1", OperationKind.UPDATE, {"title": "B"})
        queue.increment_retry(entry.id, "rejected")

        dead = queue.move_to_dead(entry.id)

        assert isinstance(dead, DeadEntry)
        assert dead.id == entry.id
        assert dead.retry_count == 1
        assert dead.error_message == "rejected"
        assert dead.data == {"title": "B"}
        assert queue.count() == 0
        assert [d.id for d in queue.list_dead()] == [entry.id]

    def test_move_missing_entry(self, queue):
        assert queue.move_to_dead("gone") is None
        assert queue.list_dead() == []

    def test_requeue_all_resets_retries(self, queue):
        first = queue.enqueue("t1", OperationKind.CREATE, {})
        second = queue.enqueue("t2", OperationKind.CREATE, {})
        for entry in (first, second):
            queue.increment_retry(entry.id, "x")
            queue.move_to_dead(entry.id)

        assert queue.requeue_dead() == 2

        snap = queue.snapshot()
        assert [e.id for e in snap] == [first.id, second.id]
        assert all(e.retry_count == 0 for e in snap)
        assert all(e.error_message is None for e in snap)
        assert snap[0].created_at == first.created_at
        assert queue.list_dead() == []

    def test_requeue_selected(self, queue):
        first = queue.enqueue("t1", OperationKind.CREATE, {})
        second = queue.enqueue("t2", OperationKind.CREATE, {})
        queue.move_to_dead(first.id)
        queue.move_to_dead(second.id)

        assert queue.requeue_dead([second.id, "unknown"]) == 1
        assert [e.id for e in queue.snapshot()] == [second.id]
        assert [d.id for d in queue.list_dead()] == [first.id]

    def test_requeue_empty_list(self, queue):
        entry = queue.enqueue("t1", OperationKind.CREATE, {})
        queue.move_to_dead(entry.id)

        assert queue.requeue_dead([]) == 0
        assert len(queue.list_dead()) == 1


class TestStorageErrors:
    def test_enqueue_failure_wrapped(self, queue):
        with patch.object(
            queue.db, "execute", side_effect=sqlite3.OperationalError("disk I/O error")
        ):
            with pytest.raises(StorageError, match="Failed to enqueue create"):
                queue.enqueue("t1", OperationKind.CREATE, {})

    def test_snapshot_failure_wrapped(self, queue):
        with patch.object(
            queue.db, "fetchall", side_effect=sqlite3.DatabaseError("malformed")
        ):
            with pytest.raises(StorageError, match="Failed to read sync queue"):
                queue.snapshot()
