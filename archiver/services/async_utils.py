"""Async utilities for running blocking operations in thread pools."""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, TypeVar
from functools import partial

T = TypeVar("T")

# Default executor for I/O-bound operations (API calls, downloads)
_executor: ThreadPoolExecutor | None = None


def get_executor(max_workers: int = 3) -> ThreadPoolExecutor:
    """Get or create the thread pool executor."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="archiver-io")
    return _executor


async def run_in_thread(func: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a blocking function in a thread pool.

    The YouTube API client and yt-dlp are both blocking; running them here
    keeps the event loop free to serve API requests during a sync run.

    Args:
        func: The blocking function to run
        *args: Positional arguments for the function
        **kwargs: Keyword arguments for the function

    Returns:
        The result of the function call
    """
    loop = asyncio.get_running_loop()
    executor = get_executor()

    if kwargs:
        func = partial(func, **kwargs)

    return await loop.run_in_executor(executor, func, *args)


def shutdown_executor() -> None:
    """Shutdown the shared executor, if one was created."""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False)
        _executor = None
