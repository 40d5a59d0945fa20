"""Tests for async_utils.run_sync."""

import threading

import pytest

from activity_mirror.core.async_utils import run_sync


def _sync_add(a: int, b: int) -> int:
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to a worker thread with correct args."""
    assert await run_sync(_sync_add, 3, 4) == 7


async def test_run_sync_passes_kwargs():
    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    assert await run_sync(_kw_func, name="world") == "hello world"


async def test_run_sync_uses_worker_thread():
    main_thread = threading.get_ident()
    worker = await run_sync(threading.get_ident)
    assert worker != main_thread


async def test_run_sync_propagates_exceptions():
    def _boom():
        raise ValueError("nope")

    with pytest.raises(ValueError, match="nope"):
        await run_sync(_boom)
