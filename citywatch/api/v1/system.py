"""System endpoints — response cache diagnostics and invalidation."""

import logging

from fastapi import APIRouter, status
from pydantic import BaseModel

from citywatch.api.deps import Cache, Viewer, ViewerRole, require_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


class CacheStatsResponse(BaseModel):
    size: int
    max_entries: int
    default_ttl_seconds: float
    sweep_interval_seconds: float
    sweeper_running: bool
    keys: list[str]


@router.get("/cache", response_model=CacheStatsResponse)
async def cache_stats(viewer: Viewer, cache: Cache) -> CacheStatsResponse:
    """Current response cache contents (keys only)."""
    require_role(viewer, ViewerRole.ADMIN, detail="Only admins can inspect the cache")
    stats = cache.stats()
    return CacheStatsResponse(
        size=stats.size,
        max_entries=stats.max_entries,
        default_ttl_seconds=cache.default_ttl,
        sweep_interval_seconds=cache.sweep_interval,
        sweeper_running=cache.running,
        keys=stats.keys,
    )


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cache(viewer: Viewer, cache: Cache) -> None:
    """Drop every cached response."""
    require_role(viewer, ViewerRole.ADMIN, detail="Only admins can clear the cache")
    cache.clear()
    logger.info("Response cache cleared by admin %s", viewer.user_id)
