"""Runtime objects shared by MCP tool handlers."""

from dataclasses import dataclass

from ..config import Config
from ..core.client import RemoteClient
from ..core.database import Database
from ..store import TaskStore
from ..sync.engine import SyncEngine
from ..sync.queue import MutationQueue


@dataclass(frozen=True, slots=True)
class AppContext:
    """Everything a tool handler may need, built once by the lifespan.

    Attributes:
        config: Validated runtime configuration.
        db: Shared SQLite handle.
        queue: Mutation queue.
        store: Local task store.
        client: Remote authority client.
        engine: Sync cycle orchestrator.
    """

    config: Config
    db: Database
    queue: MutationQueue
    store: TaskStore
    client: RemoteClient
    engine: SyncEngine
