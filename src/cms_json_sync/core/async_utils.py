"""Async utilities for bridging blocking collection-store calls to async code."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Store adapters are synchronous; the sync engine awaits them through
    this wrapper so that store calls are its only suspension points.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        collection = await run_sync(store.get_collection, "posts")
        items = await run_sync(collection.get_items)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def gather_all(
    *coros: Coroutine[Any, Any, Any],
) -> list[Any]:
    """Run independent coroutines concurrently.

    Returns results in order. Exceptions propagate from the first failure.

    Args:
        *coros: Coroutines with no dependency on one another.

    Returns:
        List of results in the same order as the input coroutines.
    """
    return list(await asyncio.gather(*coros))
