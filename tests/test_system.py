"""Tests for health and cache administration endpoints."""

import pytest
from httpx import AsyncClient

from citywatch.core.cache import build_key

ADMIN = {"X-User-Id": "root", "X-User-Role": "admin"}
CITIZEN = {"X-User-Id": "u", "X-User-Role": "citizen", "X-City-Id": "pune"}


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_cache_stats(client: AsyncClient, cache):
    await client.get("/v1/reports", headers=CITIZEN)

    resp = await client.get("/v1/system/cache", headers=ADMIN)
    assert resp.status_code == 200
    data = resp.json()
    assert data["size"] == 1
    assert data["max_entries"] == 1000
    assert data["default_ttl_seconds"] == 30
    assert data["sweep_interval_seconds"] == 300
    assert data["sweeper_running"] is False
    assert data["keys"][0].startswith("reports:")


@pytest.mark.asyncio
async def test_clear_cache(client: AsyncClient, cache):
    cache.set(build_key("reports"), {"reports": []}, 60)
    cache.set(build_key("events"), {"events": []}, 60)

    resp = await client.delete("/v1/system/cache", headers=ADMIN)
    assert resp.status_code == 204
    assert cache.stats().size == 0


@pytest.mark.asyncio
async def test_cache_endpoints_are_admin_only(client: AsyncClient, cache):
    cache.set("key", "value", 60)

    resp = await client.get("/v1/system/cache", headers=CITIZEN)
    assert resp.status_code == 403

    resp = await client.delete("/v1/system/cache", headers=CITIZEN)
    assert resp.status_code == 403
    assert cache.get("key") == "value"
