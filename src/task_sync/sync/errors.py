"""Exception hierarchy for the sync engine.

Conflicts are not errors (they are a normal outcome) and an entry that
exceeds the retry cap is reported through the observer, not raised.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for sync engine failures."""


class StorageError(SyncError):
    """A durable read or write against the local database failed."""


class ConnectivityError(SyncError):
    """The remote authority is unreachable; the whole cycle is aborted."""


class TransportError(SyncError):
    """A batch request failed or timed out.

    Every entry of the affected batch is treated as failed.
    """
