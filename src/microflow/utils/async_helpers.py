from __future__ import annotations

import asyncio
import concurrent.futures
from typing import Any, Coroutine, TypeVar

T = TypeVar("T")


def run_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously.

    Creates a new event loop if none is running.
    If a loop is already running (e.g. inside Jupyter or an existing async context),
    runs the coroutine on a fresh event loop in a worker thread so the calling
    thread blocks until done.

    Args:
        coro: The coroutine to run.

    Returns:
        The value returned by *coro*.

    Raises:
        Any exception raised by *coro*.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    # Blocking on the running loop would deadlock it; use a private loop instead.
    with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(asyncio.run, coro)
        return future.result()
