"""Async utilities for bridging blocking HTTP and SQLite calls into async code."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Every suspension point of a sync cycle (connectivity probe, batch
    request, queue and task table access) goes through here.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        # In a tool handler:
        task = await run_sync(store.get_task, task_id)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
