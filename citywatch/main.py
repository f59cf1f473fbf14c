"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from citywatch.api.v1 import v1_router
from citywatch.core.cache import ResponseCache
from citywatch.core.config import Settings, get_settings
from citywatch.core.database import init_db

logger = logging.getLogger(__name__)


def build_cache(settings: Settings) -> ResponseCache:
    return ResponseCache(
        default_ttl=settings.cache_default_ttl_seconds,
        max_entries=settings.cache_max_entries,
        sweep_interval=settings.cache_sweep_interval_seconds,
    )


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Startup: ensure tables exist (use Alembic in production)
    await init_db()
    cache = build_cache(settings)
    cache.start()
    application.state.cache = cache
    logger.info(
        "CityWatch started (cache ttl=%.0fs, max_entries=%d)",
        cache.default_ttl, cache.max_entries,
    )
    try:
        yield
    finally:
        # Shutdown: the sweeper must not outlive the app
        await cache.stop()
        cache.clear()


app = FastAPI(
    title="CityWatch",
    version="0.1.0",
    description="Civic issue reporting API",
    lifespan=lifespan,
)

# ── CORS ─────────────────────────────────────────────────────
_settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _settings.allowed_origins.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Cache"],
)

# ── API routes ───────────────────────────────────────────────
app.include_router(v1_router)


@app.get("/health", tags=["system"])
async def health_check() -> dict:
    return {"status": "ok"}
