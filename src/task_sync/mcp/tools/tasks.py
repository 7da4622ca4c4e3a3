"""Task tool handlers for MCP server.

This module implements the local task store tools: create, get, list,
update, and delete.  Every mutation is recorded in the sync queue and
reaches the remote authority on the next sync cycle; none of these tools
needs the remote to be reachable.
"""

import logging

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.models import Task
from ..context import AppContext
from .errors import build_error_response, format_timestamp
from .registry import TASK_MODIFY, TASK_VIEW, ToolSpec

logger = logging.getLogger(__name__)

_TASK_ID_PROPERTY = {
    "type": "string",
    "description": "Task identifier (required)",
}

# Tool definitions for list_tools()
TASK_TOOLS = [
    types.Tool(
        name="task_create",
        description="Create a task in the local store. Works offline; the task is queued for the next sync.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "title": {
                    "type": "string",
                    "description": "Task title (required)",
                },
                "description": {
                    "type": "string",
                    "description": "Task description (optional)",
                },
                "completed": {
                    "type": "boolean",
                    "description": "Create the task already completed (default: false)",
                },
            },
            "required": ["title"],
        },
    ),
    types.Tool(
        name="task_get",
        description="Get one task by id, including its sync status and server id.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"task_id": _TASK_ID_PROPERTY},
            "required": ["task_id"],
        },
    ),
    types.Tool(
        name="task_list",
        description="List tasks in the local store (deleted tasks are hidden).",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "include_completed": {
                    "type": "boolean",
                    "description": "Include completed tasks (default: true)",
                    "default": True,
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="task_update",
        description="Update title, description or completion of a task. Only the given fields change.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=False,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "task_id": _TASK_ID_PROPERTY,
                "title": {"type": "string", "description": "New title"},
                "description": {
                    "type": "string",
                    "description": "New description",
                },
                "completed": {
                    "type": "boolean",
                    "description": "New completion flag",
                },
            },
            "required": ["task_id"],
        },
    ),
    types.Tool(
        name="task_delete",
        description="Delete a task. The deletion is synced to the remote on the next sync cycle.",
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=True,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {"task_id": _TASK_ID_PROPERTY},
            "required": ["task_id"],
        },
    ),
]


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _task_to_json(task: Task) -> dict:
    return task.model_dump(mode="json")


def _format_task(task: Task) -> str:
    lines = [
        f"{task.title} [{'x' if task.completed else ' '}]",
        f"  id: {task.id}",
        f"  sync: {task.sync_status.value}"
        + (f" (server id {task.server_id})" if task.server_id else ""),
        f"  updated: {format_timestamp(task.updated_at)}",
    ]
    if task.description:
        lines.append("")
        lines.append(task.description)
    return "\n".join(lines)


def _not_found(task_id: str) -> types.CallToolResult:
    return build_error_response(
        "not_found",
        f"Task '{task_id}' not found",
        "Use task_list to find existing tasks.",
    )


def _require_task_id(args: dict) -> str | None:
    task_id = args.get("task_id")
    return task_id if isinstance(task_id, str) and task_id else None


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_create(
    ctx: AppContext, args: dict
) -> types.CallToolResult:
    """Handle task_create."""
    title = args.get("title")
    if not title:
        return build_error_response(
            "validation_error",
            "title is required",
            "Provide title parameter.",
        )

    task = await run_sync(
        ctx.store.create_task,
        title,
        args.get("description") or "",
        completed=bool(args.get("completed", False)),
    )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Created task '{task.title}' ({task.id}), pending sync.",
            )
        ],
        structuredContent=_task_to_json(task),
    )


async def _handle_get(ctx: AppContext, args: dict) -> types.CallToolResult:
    """Handle task_get."""
    task_id = _require_task_id(args)
    if task_id is None:
        return build_error_response(
            "validation_error",
            "task_id is required",
            "Provide task_id parameter.",
        )

    task = await run_sync(ctx.store.get_task, task_id)
    if task is None:
        return _not_found(task_id)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=_format_task(task))],
        structuredContent=_task_to_json(task),
    )


async def _handle_list(ctx: AppContext, args: dict) -> types.CallToolResult:
    """Handle task_list."""
    include_completed = bool(args.get("include_completed", True))
    tasks = await run_sync(ctx.store.list_tasks, include_completed)

    if tasks:
        text = "\n\n".join(_format_task(t) for t in tasks)
    else:
        text = "No tasks."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "tasks": [_task_to_json(t) for t in tasks],
            "count": len(tasks),
        },
    )


async def _handle_update(
    ctx: AppContext, args: dict
) -> types.CallToolResult:
    """Handle task_update."""
    task_id = _require_task_id(args)
    if task_id is None:
        return build_error_response(
            "validation_error",
            "task_id is required",
            "Provide task_id parameter.",
        )

    fields = {
        key: args[key]
        for key in ("title", "description", "completed")
        if args.get(key) is not None
    }
    if not fields:
        return build_error_response(
            "validation_error",
            "no fields to update",
            "Provide at least one of title, description or completed.",
        )

    task = await run_sync(ctx.store.update_task, task_id, **fields)
    if task is None:
        return _not_found(task_id)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Updated task {task_id} ({', '.join(sorted(fields))}), pending sync.",
            )
        ],
        structuredContent=_task_to_json(task),
    )


async def _handle_delete(
    ctx: AppContext, args: dict
) -> types.CallToolResult:
    """Handle task_delete."""
    task_id = _require_task_id(args)
    if task_id is None:
        return build_error_response(
            "validation_error",
            "task_id is required",
            "Provide task_id parameter.",
        )

    deleted = await run_sync(ctx.store.delete_task, task_id)
    if not deleted:
        return _not_found(task_id)
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text", text=f"Deleted task {task_id}, pending sync."
            )
        ]
    )


# ToolSpec list for registry-based dispatch
TASK_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=TASK_TOOLS[0],
        permissions=frozenset({TASK_MODIFY}),
        handler=_handle_create,
    ),
    ToolSpec(
        tool=TASK_TOOLS[1],
        permissions=frozenset({TASK_VIEW}),
        handler=_handle_get,
    ),
    ToolSpec(
        tool=TASK_TOOLS[2],
        permissions=frozenset({TASK_VIEW}),
        handler=_handle_list,
    ),
    ToolSpec(
        tool=TASK_TOOLS[3],
        permissions=frozenset({TASK_MODIFY}),
        handler=_handle_update,
    ),
    ToolSpec(
        tool=TASK_TOOLS[4],
        permissions=frozenset({TASK_MODIFY}),
        handler=_handle_delete,
    ),
]
