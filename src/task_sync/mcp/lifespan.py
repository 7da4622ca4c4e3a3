"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, yaml_fallbacks
from ..core.async_utils import run_sync
from ..core.client import RemoteClient
from ..core.database import Database
from ..store import TaskStore
from ..sync.engine import SyncEngine
from ..sync.queue import MutationQueue
from .context import AppContext

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def resolve_config(config_overrides: dict[str, Any] | None = None) -> Config:
    """Load configuration with unified precedence.

    CLI args > env vars (.env loaded first) > YAML config > defaults.

    Raises:
        RuntimeError: If the resulting configuration is invalid.
    """
    try:
        # .env first so ${VAR} interpolation in YAML can use its values
        load_dotenv()

        fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            raw = load_hierarchical_config()
            fallbacks = yaml_fallbacks(build_config(raw))
            sources.append(f"config file: {config_files[0]}")

        overrides = config_overrides or {}
        config = load_config(
            url=overrides.get("url"),
            db_path=overrides.get("db_path"),
            insecure=overrides.get("insecure", False),
            debug=overrides.get("debug", False),
            yaml_fallbacks=fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        _stderr_print(
            "  Check TASK_SYNC_API_URL, TASK_SYNC_DB_PATH and the sync settings."
        )
        raise RuntimeError(f"Configuration error: {e}") from e

    logger.info("Remote API: %s", config.api_url)
    _stderr_print(f"  Remote API: {config.api_url}")
    return config


def build_context(config: Config) -> AppContext:
    """Open the database and wire the store and the sync engine.

    Raises:
        RuntimeError: If the database cannot be opened.
    """
    try:
        db = Database(config.db_path)
    except Exception as e:
        logger.error("Failed to open database %s: %s", config.db_path, e)
        _stderr_print(f"ERROR: Cannot open database {config.db_path}: {e}")
        raise RuntimeError(f"Database error: {e}") from e

    queue = MutationQueue(db)
    store = TaskStore(db, queue)
    client = RemoteClient(config)
    engine = SyncEngine.from_config(config, queue, store, client)
    logger.info("Local database: %s", db.path)
    _stderr_print(f"  Local database: {db.path}")
    return AppContext(
        config=config,
        db=db,
        queue=queue,
        store=store,
        client=client,
        engine=engine,
    )


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[AppContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env, YAML config and CLI overrides into one ``Config``
    - Open the local database and wire the task store and sync engine
    - Probe the remote API (informational only; the server works offline)

    On shutdown:
    - Close the database

    Args:
        config_overrides: Optional dict with config values from CLI (url, db_path, insecure, debug)

    Yields:
        The ``AppContext`` shared by all tool handlers.

    Raises:
        RuntimeError: If configuration is invalid or the database cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("Task Sync Server starting...")

    config = resolve_config(config_overrides)
    ctx = build_context(config)

    online = await run_sync(ctx.engine.gate.probe)
    if online:
        _stderr_print("  Remote API reachable.")
    else:
        logger.warning("Remote API unreachable at startup; working offline")
        _stderr_print("  Remote API unreachable; changes will queue until it is back.")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield ctx
    finally:
        ctx.db.close()
        logger.info("MCP server shutting down")
        _stderr_print("Task Sync Server shutting down.")
