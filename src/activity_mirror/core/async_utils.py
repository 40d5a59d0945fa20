"""Async utilities for bridging blocking gateway calls into the sync engine."""

import asyncio
from typing import Any, Callable, TypeVar

T = TypeVar("T")


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a worker thread without blocking the event loop.

    The forge gateway (``requests``) and the git gateway (``subprocess``)
    are both blocking; the engine awaits every call through this helper.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)

    Example:
        commit = await run_sync(git.last_commit, path)
    """
    return await asyncio.to_thread(func, *args, **kwargs)
