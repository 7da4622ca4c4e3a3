"""Tests for task_sync.sync.observer.LoggingObserver."""

import logging
from datetime import datetime, timezone

from task_sync.sync.models import ConflictResolvedEvent, EntryDroppedEvent
from task_sync.sync.observer import LoggingObserver

_LOGGER = "task_sync.sync.observer"


def test_conflict_logged_at_info(caplog):
    event = ConflictResolvedEvent(
        task_id="t1",
        chosen_side="remote",
        local_updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        remote_updated_at=datetime(2026, 1, 2, tzinfo=timezone.utc),
    )

    with caplog.at_level(logging.INFO, logger=_LOGGER):
        LoggingObserver().conflict_resolved(event)

    (record,) = caplog.records
    assert record.levelno == logging.INFO
    assert "resolved in favour of remote" in record.getMessage()
    assert record.event["type"] == "conflict_resolved"
    assert record.event["task_id"] == "t1"
    assert record.event["remote_updated_at"].startswith("2026-01-02")


def test_drop_logged_at_warning(caplog):
    event = EntryDroppedEvent(
        task_id="t1",
        entry_id="e1",
        final_error="validation failed",
        retry_count=4,
        dead_lettered=True,
    )

    with caplog.at_level(logging.WARNING, logger=_LOGGER):
        LoggingObserver().entry_dropped(event)

    (record,) = caplog.records
    assert record.levelno == logging.WARNING
    assert "after 4 failures" in record.getMessage()
    assert record.event == {
        "type": "entry_dropped",
        "task_id": "t1",
        "entry_id": "e1",
        "final_error": "validation failed",
        "retry_count": 4,
        "dead_lettered": True,
    }
