"""Error response builders and shared utilities for MCP tool handlers.

This module provides structured error responses with corrective actions
to help AI agents recover from errors without human intervention, plus
shared formatting utilities used across tool modules.
"""

from datetime import datetime

import mcp.types as types


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, offline, validation_error, sync_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Task abc not found", "Use task_list to find existing tasks.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


# ---------------------------------------------------------------------------
# Shared formatting utilities
# ---------------------------------------------------------------------------


def format_timestamp(timestamp: datetime | None) -> str:
    """Format timestamp for display (YYYY-MM-DD HH:MM UTC, or ``never``)."""
    match timestamp:
        case datetime() as dt:
            return dt.strftime("%Y-%m-%d %H:%M UTC")
        case None:
            return "never"
        case _:
            return str(timestamp)
