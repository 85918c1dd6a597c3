from __future__ import annotations

import asyncio

import pytest

from microflow.utils.async_helpers import run_sync

# ---------------------------------------------------------------------------
# run_sync
# ---------------------------------------------------------------------------


def test_run_sync_returns_value() -> None:
    """run_sync executes a coroutine and returns its result."""

    async def _coro() -> int:
        return 42

    assert run_sync(_coro()) == 42


def test_run_sync_propagates_exception() -> None:
    """run_sync re-raises exceptions from the coroutine."""

    async def _boom() -> None:
        raise ValueError("oops")

    with pytest.raises(ValueError, match="oops"):
        run_sync(_boom())


def test_run_sync_awaits_async_sleep() -> None:
    async def _sleep_and_return() -> str:
        await asyncio.sleep(0)
        return "done"

    assert run_sync(_sleep_and_return()) == "done"


async def test_run_sync_inside_running_loop() -> None:
    """Inside a running loop the coroutine runs on a worker thread."""

    async def _inner() -> str:
        await asyncio.sleep(0)
        return "threaded"

    assert run_sync(_inner()) == "threaded"
