"""Core plumbing shared by the sync engine and the MCP server."""

from .async_utils import run_sync
from .client import RemoteClient
from .database import Database

__all__ = ["Database", "RemoteClient", "run_sync"]
