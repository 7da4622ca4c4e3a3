"""MCP Server for the offline-first task store using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents manage tasks locally and push them to the remote API when it is
reachable.

Transport: stdio (for MCP desktop/CLI clients)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..config_loader import ensure_config
from ..core.async_utils import run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from ..sync.reporter import format_cycle_result
from .context import AppContext
from .lifespan import build_context, resolve_config, server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

# Initialize server instance
server = Server("task-sync-server")

# Global context (initialized in lifespan)
_app_context: AppContext | None = None

# Global registry instance (initialized in main)
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available, no permission required)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: AppContext, args: dict) -> types.CallToolResult:
    """Handle ping tool -- test remote API reachability."""
    online = await run_sync(ctx.engine.gate.probe)
    if online:
        return types.CallToolResult(
            content=[
                types.TextContent(
                    type="text",
                    text=f"Task sync server running. Remote API reachable at {ctx.client.base_url}.",
                )
            ]
        )
    return types.CallToolResult(
        content=[
            types.TextContent(
                type="text",
                text=f"Task sync server running, but the remote API at {ctx.client.base_url} is unreachable. "
                "Local task tools keep working; changes sync once it is back.",
            )
        ],
        isError=True,
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Test task sync server health and remote API reachability",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> AppContext:
    """Get the global AppContext instance.

    Raises:
        RuntimeError: If the context is not initialized
    """
    if _app_context is None:
        raise RuntimeError(
            "AppContext not initialized. Server lifespan not started."
        )
    return _app_context


def set_context(ctx: AppContext | None) -> None:
    """Set the global AppContext instance, or None to clear."""
    global _app_context
    _app_context = ctx


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    """Set the global ToolRegistry instance, or None to clear."""
    global _registry
    _registry = registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    """List available tools.

    Returns all registered (and permitted) tools from the ToolRegistry.
    """
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch.

    Args:
        name: The name of the tool to execute.
        arguments: Tool arguments (optional).

    Returns:
        CallToolResult with tool output content and optional isError flag.
    """
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Build the ToolRegistry with optional permission filtering."""
    allowed_permissions = None
    if permissions_file:
        allowed_permissions = load_permissions_file(permissions_file)
        logger.info(
            "Loaded %d permissions from %s",
            len(allowed_permissions),
            permissions_file,
        )

    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed_permissions)
    logger.info(
        "Registered %d tools (of %d total)",
        registry.tool_count(),
        len(all_specs),
    )

    if permissions_file:
        print(
            f"Permissions file: {permissions_file} "
            f"({registry.tool_count()} of {len(all_specs)} tools enabled)",
            file=sys.stderr,
        )
    return registry


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    This function sets up logging for MCP mode (file only, never stdout),
    opens the local store via the lifespan manager, and starts the server
    with stdio transport for JSON-RPC communication.

    Args:
        config_overrides: Optional dict with config values to override (url, db_path, insecure, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run BEFORE stdio_server so nothing reaches stdout during
    # protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    set_registry(build_registry(overrides.get("permissions_file")))

    # set_context() is called here rather than in the lifespan so that
    # running via `python -m task_sync.mcp.server` (module loaded as
    # __main__) updates this module's global, not a re-imported copy.
    async with server_lifespan(config_overrides=config_overrides) as ctx:
        set_context(ctx)
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="task-sync-server",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(
                    read_stream, write_stream, init_options
                )
        finally:
            set_context(None)
            set_registry(None)


async def sync_once(config_overrides: dict | None = None) -> int:
    """Run a single sync cycle and print the report to stdout.

    Returns:
        Process exit status: 0 when the cycle succeeded, 1 otherwise.
    """
    overrides = config_overrides or {}
    setup_logging(
        mode="cli",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    config = resolve_config(config_overrides)
    ctx = build_context(config)
    try:
        result = await ctx.engine.run()
    finally:
        ctx.db.close()

    print(format_cycle_result(result))
    return 0 if result.success else 1


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Task Sync Server - offline-first task store with an MCP interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .task_sync/config.yml)
  task-sync-server

  # Point at a different remote API
  task-sync-server --api-url https://tasks.example.com/api

  # Use a project-local database
  task-sync-server --db-path ./.task_sync/tasks.db

  # Push queued changes once and exit (cron-friendly)
  task-sync-server --sync-once

  # Restrict tools by permission
  task-sync-server --permissions-file /etc/task-sync/read-only.permissions

  # Write a commented starter config file
  task-sync-server --init-config

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--api-url",
        help="Override remote API base URL (takes precedence over TASK_SYNC_API_URL env var and config files)",
    )
    parser.add_argument(
        "--db-path",
        help="Override SQLite database path (takes precedence over TASK_SYNC_DB_PATH env var and config files)",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (e.g., TASK_VIEW), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--sync-once",
        action="store_true",
        help="Run one sync cycle, print the report and exit instead of serving MCP",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Write a commented starter config file if none exists and exit",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"task-sync-server version {__version__}",
    )

    args = parser.parse_args()

    if args.init_config:
        path = ensure_config()
        print(f"Config file: {path}", file=sys.stderr)
        sys.exit(0)

    # Build config overrides dict from CLI args
    config_overrides: dict = {}
    if args.api_url:
        config_overrides["url"] = args.api_url
    if args.db_path:
        config_overrides["db_path"] = args.db_path
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file

    if config_overrides:
        print(
            f"Config overrides from CLI: {', '.join(config_overrides)}",
            file=sys.stderr,
        )

    try:
        if args.sync_once:
            sys.exit(asyncio.run(sync_once(config_overrides or None)))
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by the lifespan helpers
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
