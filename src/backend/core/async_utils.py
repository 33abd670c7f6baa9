"""
Async utilities for blocking operations and bounded store calls.

Usage:
    from core.async_utils import run_blocking, run_bounded

    # Instead of: blocking_function()
    result = await run_blocking(blocking_function, arg1, arg2)

    # Store call that must finish within 5 seconds
    rows = await run_bounded(db.execute(stmt), 5.0, "fetch page")
"""

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from core.exceptions import UnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run a blocking function in a separate thread to avoid blocking the event loop.

    Args:
        func: The synchronous function to run
        *args: Positional arguments to pass to the function
        **kwargs: Keyword arguments to pass to the function

    Returns:
        The result of the function call

    Example:
        # Blocking file write that would block the event loop:
        await run_blocking(path.write_bytes, content)
    """
    loop = asyncio.get_running_loop()
    # Use None for the executor to use the default ThreadPoolExecutor
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


async def run_bounded(awaitable: Awaitable[T], timeout: float, operation: str) -> T:
    """
    Await a store operation under an upper time bound.

    Args:
        awaitable: The store call
        timeout: Bound in seconds
        operation: Short description used in the log line

    Raises:
        UnavailableError: If the bound is exceeded (retriable, HTTP 503)
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"{operation} exceeded {timeout}s bound")
        raise UnavailableError()
