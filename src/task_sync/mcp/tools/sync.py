"""MCP tool handlers for the sync engine.

Defines four tools:

- ``sync_run`` -- run one sync cycle against the remote authority.
- ``sync_status`` -- pending work, last sync time and reachability.
- ``sync_dead_entries`` -- list queue entries that exhausted their retries.
- ``sync_requeue`` -- move dead entries back into the queue.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.reporter import (
    format_cycle_result,
    format_dead_entries,
    format_status,
    result_to_json,
    status_to_json,
)
from ..context import AppContext
from .errors import build_error_response
from .registry import SYNC_RUN, SYNC_VIEW, ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_run",
        description=(
            "Push queued local task changes to the remote API. Fails with "
            "an 'offline' error when the remote is unreachable; queued "
            "changes are kept for the next attempt."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_status",
        description=(
            "Show sync status -- tasks waiting to sync, last sync time, and whether the remote API is reachable."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_dead_entries",
        description=(
            "List queued changes that were dropped after repeated sync failures."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    types.Tool(
        name="sync_requeue",
        description=(
            "Put dropped changes back into the sync queue with a fresh retry count. "
            "Without entry_ids, all dropped changes are requeued."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "entry_ids": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Dead entry ids to requeue (optional)",
                },
            },
            "required": [],
        },
    ),
]


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


async def _handle_sync_run(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_run`` tool."""
    online = await run_sync(ctx.engine.gate.probe)
    if not online:
        return build_error_response(
            "offline",
            f"Remote API at {ctx.client.base_url} is unreachable.",
            "Local changes stay queued. Retry sync_run once the remote is back.",
        )

    result = await ctx.engine.run()
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_cycle_result(result))
        ],
        structuredContent=result_to_json(result),
    )


async def _handle_sync_status(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_status`` tool."""
    report = await ctx.engine.get_status()
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_status(report))],
        structuredContent=status_to_json(report),
    )


async def _handle_dead_entries(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_dead_entries`` tool."""
    entries = await run_sync(ctx.queue.list_dead)
    return types.CallToolResult(
        content=[
            types.TextContent(type="text", text=format_dead_entries(entries))
        ],
        structuredContent={
            "entries": [e.model_dump(mode="json") for e in entries],
            "count": len(entries),
        },
    )


async def _handle_requeue(
    ctx: AppContext, args: dict[str, Any]
) -> types.CallToolResult:
    """Handle the ``sync_requeue`` tool."""
    entry_ids = args.get("entry_ids")
    if entry_ids is not None and (
        not isinstance(entry_ids, list)
        or not all(isinstance(i, str) for i in entry_ids)
    ):
        return build_error_response(
            "validation_error",
            "entry_ids must be a list of strings",
            "Use sync_dead_entries to list dead entry ids.",
        )

    count = await run_sync(ctx.queue.requeue_dead, entry_ids)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Requeued {count} entries. Run sync_run to retry them.",
            )
        ],
        structuredContent={"requeued": count},
    )


# ToolSpec list for registry-based dispatch
SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=SYNC_TOOLS[0],
        permissions=frozenset({SYNC_RUN}),
        handler=_handle_sync_run,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[1],
        permissions=frozenset({SYNC_VIEW}),
        handler=_handle_sync_status,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[2],
        permissions=frozenset({SYNC_VIEW}),
        handler=_handle_dead_entries,
    ),
    ToolSpec(
        tool=SYNC_TOOLS[3],
        permissions=frozenset({SYNC_RUN}),
        handler=_handle_requeue,
    ),
]
