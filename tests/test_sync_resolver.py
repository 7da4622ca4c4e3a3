"""Tests for sync conflict resolver strategies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from task_sync.sync.models import Task
from task_sync.sync.resolver import (
    LastWriteWinsResolver,
    LocalWinsResolver,
    RemoteWinsResolver,
    create_resolver,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_T0 = datetime(2026, 5, 4, 12, 0, tzinfo=timezone.utc)


def _make_task(title: str, updated_offset: int = 0) -> Task:
    """Build a task whose ``updated_at`` is *updated_offset* seconds past T0."""
    return Task(
        id="task-1",
        title=title,
        created_at=_T0,
        updated_at=_T0 + timedelta(seconds=updated_offset),
    )


# ---------------------------------------------------------------------------
# LastWriteWinsResolver
# ---------------------------------------------------------------------------


class TestLastWriteWinsResolver:
    def test_newer_local_wins(self) -> None:
        local = _make_task("local", updated_offset=10)
        remote = _make_task("remote", updated_offset=5)

        assert LastWriteWinsResolver().resolve(local, remote) is local

    def test_newer_remote_wins(self) -> None:
        local = _make_task("local", updated_offset=5)
        remote = _make_task("remote", updated_offset=10)

        assert LastWriteWinsResolver().resolve(local, remote) is remote

    def test_tie_goes_to_remote(self) -> None:
        """Equal timestamps favour the remote authority."""
        local = _make_task("local")
        remote = _make_task("remote")

        assert LastWriteWinsResolver().resolve(local, remote) is remote

    def test_naive_timestamps_treated_as_utc(self) -> None:
        local = Task(
            id="task-1",
            title="local",
            created_at=datetime(2026, 5, 4, 12, 0),
            updated_at=datetime(2026, 5, 4, 12, 0, 1),
        )
        remote = _make_task("remote")

        assert LastWriteWinsResolver().resolve(local, remote) is local


# ---------------------------------------------------------------------------
# Fixed-side resolvers
# ---------------------------------------------------------------------------


class TestFixedSideResolvers:
    def test_local_wins_even_when_older(self) -> None:
        local = _make_task("local", updated_offset=-60)
        remote = _make_task("remote")

        assert LocalWinsResolver().resolve(local, remote) is local

    def test_remote_wins_even_when_older(self) -> None:
        local = _make_task("local")
        remote = _make_task("remote", updated_offset=-60)

        assert RemoteWinsResolver().resolve(local, remote) is remote


# ---------------------------------------------------------------------------
# create_resolver factory
# ---------------------------------------------------------------------------


class TestCreateResolver:
    @pytest.mark.parametrize(
        "strategy,cls",
        [
            ("last-write-wins", LastWriteWinsResolver),
            ("local-wins", LocalWinsResolver),
            ("remote-wins", RemoteWinsResolver),
        ],
    )
    def test_known_strategies(self, strategy, cls) -> None:
        assert isinstance(create_resolver(strategy), cls)

    def test_default_is_last_write_wins(self) -> None:
        assert isinstance(create_resolver(), LastWriteWinsResolver)

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            create_resolver("merge")
