"""Tests for the background expiry sweep and its lifecycle."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import FastAPI

from citywatch.core.cache import ResponseCache
from citywatch.main import lifespan


@pytest.mark.asyncio
async def test_sweep_removes_never_read_entries():
    """Entries that are never read again are gone after one sweep interval."""
    cache = ResponseCache(sweep_interval=0.01)
    for i in range(50):
        cache.set(f"key{i}", i, 0)
    assert cache.stats().size == 50

    cache.start()
    try:
        await asyncio.sleep(0.1)
        assert cache.stats().size == 0
    finally:
        await cache.stop()


@pytest.mark.asyncio
async def test_sweep_keeps_fresh_entries():
    cache = ResponseCache(sweep_interval=0.01)
    cache.set("fresh", "value", 60)
    cache.set("stale", "value", 0)

    cache.start()
    try:
        await asyncio.sleep(0.1)
    finally:
        await cache.stop()

    assert cache.stats().keys == ["fresh"]


@pytest.mark.asyncio
async def test_start_is_idempotent_and_stop_cancels():
    cache = ResponseCache(sweep_interval=60)
    cache.start()
    task = cache._sweeper
    cache.start()
    assert cache._sweeper is task
    assert cache.running

    await cache.stop()
    assert not cache.running
    assert task.cancelled()


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    cache = ResponseCache()
    await cache.stop()
    assert not cache.running


@pytest.mark.asyncio
async def test_cache_can_restart_after_stop():
    cache = ResponseCache(sweep_interval=0.01)
    cache.start()
    await cache.stop()

    cache.set("stale", "value", 0)
    cache.start()
    try:
        await asyncio.sleep(0.1)
        assert cache.stats().size == 0
    finally:
        await cache.stop()


def test_start_requires_running_loop():
    cache = ResponseCache()
    with pytest.raises(RuntimeError):
        cache.start()


@pytest.mark.asyncio
async def test_sweep_failure_does_not_kill_sweeper():
    cache = ResponseCache(sweep_interval=0.01)
    calls = 0
    original = cache.sweep

    def flaky_sweep() -> int:
        nonlocal calls
        calls += 1
        if calls == 1:
            raise RuntimeError("boom")
        return original()

    cache.sweep = flaky_sweep  # type: ignore[method-assign]
    cache.set("stale", "value", 0)

    cache.start()
    try:
        await asyncio.sleep(0.1)
        assert cache.running
    finally:
        await cache.stop()

    assert calls >= 2
    assert cache.stats().size == 0


@pytest.mark.asyncio
async def test_lifespan_owns_the_cache():
    """App startup builds and starts the cache; shutdown stops the sweeper."""
    test_app = FastAPI()
    with patch("citywatch.main.init_db", new_callable=AsyncMock) as mock_init:
        async with lifespan(test_app):
            cache = test_app.state.cache
            assert isinstance(cache, ResponseCache)
            assert cache.running
            assert cache.default_ttl == 30
            assert cache.max_entries == 1000
            assert cache.sweep_interval == 300
            cache.set("key", "value")

        mock_init.assert_awaited_once()

    assert not cache.running
    assert cache.stats().size == 0
