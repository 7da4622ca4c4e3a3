"""Conflict resolution strategies for the sync engine.

A conflict means the remote authority already holds a different version
of a task.  Resolvers pick one full version; there is no field-level merge.

- ``LastWriteWinsResolver``: Newer ``updated_at`` wins; ties go to remote.
- ``LocalWinsResolver``: Always picks the local task.
- ``RemoteWinsResolver``: Always picks the remote task.

The ``create_resolver()`` factory maps config strategy strings to resolver
instances.
"""

from __future__ import annotations

import logging
from typing import Protocol

from task_sync.sync.models import Task

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ConflictResolver(Protocol):
    """Protocol that all conflict resolvers must satisfy."""

    def resolve(self, local: Task, remote: Task) -> Task:
        """Return the winning version.

        Implementations return one of the two arguments unchanged, so
        callers can tell the chosen side by identity.
        """
        ...  # pragma: no cover


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class LastWriteWinsResolver:
    """Pick the version with the strictly newer ``updated_at``.

    Equal timestamps favour the remote authority.
    """

    def resolve(self, local: Task, remote: Task) -> Task:
        if local.updated_at > remote.updated_at:
            logger.debug(
                "Task %s: local version newer (%s > %s)",
                local.id,
                local.updated_at.isoformat(),
                remote.updated_at.isoformat(),
            )
            return local
        return remote


class LocalWinsResolver:
    """Always resolve conflicts in favour of the local task."""

    def resolve(self, local: Task, remote: Task) -> Task:
        return local


class RemoteWinsResolver:
    """Always resolve conflicts in favour of the remote task."""

    def resolve(self, local: Task, remote: Task) -> Task:
        return remote


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_STRATEGY_MAP: dict[str, type] = {
    "last-write-wins": LastWriteWinsResolver,
    "local-wins": LocalWinsResolver,
    "remote-wins": RemoteWinsResolver,
}


def create_resolver(strategy: str = "last-write-wins") -> ConflictResolver:
    """Create a conflict resolver for the given strategy string.

    Args:
        strategy: One of ``"last-write-wins"``, ``"local-wins"``,
            ``"remote-wins"``.

    Raises:
        ValueError: If the strategy string is not recognised.
    """
    cls = _STRATEGY_MAP.get(strategy)
    if cls is None:
        raise ValueError(
            f"Unknown conflict strategy: '{strategy}'. Valid strategies: {sorted(_STRATEGY_MAP.keys())}"
        )
    return cls()  # type: ignore[return-value]
