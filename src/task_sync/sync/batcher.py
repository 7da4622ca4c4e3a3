"""Partition a queue snapshot into bounded, ordered batches."""

from __future__ import annotations

from collections.abc import Sequence

from task_sync.sync.models import QueueEntry

DEFAULT_BATCH_SIZE = 10


def partition(
    entries: Sequence[QueueEntry], batch_size: int = DEFAULT_BATCH_SIZE
) -> list[list[QueueEntry]]:
    """Split *entries* into contiguous groups of at most *batch_size*.

    Order is preserved within and across groups; only the last group may
    be short.  An empty input yields no batches.

    Raises:
        ValueError: If *batch_size* is not a positive integer.
    """
    if batch_size <= 0:
        raise ValueError(
            f"Invalid batch size {batch_size}: must be a positive integer"
        )
    return [
        list(entries[start : start + batch_size])
        for start in range(0, len(entries), batch_size)
    ]
