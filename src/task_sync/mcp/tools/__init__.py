"""MCP tool handlers for the task store and sync engine.

This package contains MCP tool implementations that wrap the local task
store and the sync engine with async handlers and structured error
responses.
"""

from .errors import build_error_response
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .sync import SYNC_SPECS, SYNC_TOOLS
from .tasks import TASK_SPECS, TASK_TOOLS

ALL_SPECS: list[ToolSpec] = TASK_SPECS + SYNC_SPECS

__all__ = [
    "build_error_response",
    # Registry
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    # Spec lists
    "ALL_SPECS",
    "TASK_SPECS",
    "SYNC_SPECS",
    # Tool lists
    "TASK_TOOLS",
    "SYNC_TOOLS",
]
