"""Process-local TTL cache for API read responses.

Read endpoints where identical requests within a short window should be
served from memory instead of re-running list/aggregate queries. One
instance is built at application startup and injected into handlers; a
background sweep keeps write-once/read-never keys from piling up.

Entries are not durable: a restart loses everything, so callers must treat
a miss as always safe to recompute.
"""

import asyncio
import contextlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

# Defaults in seconds
DEFAULT_TTL = 30.0
DEFAULT_SWEEP_INTERVAL = 300.0
DEFAULT_MAX_ENTRIES = 1000

_PRIMITIVES = (str, int, float, bool, type(None))


class CacheKeyError(ValueError):
    """Raised when a cache key cannot be built without risking collisions."""


def build_key(route: str, params: Mapping[str, Any] | None = None) -> str:
    """Fingerprint a request as ``route:{"a":1,"b":2}``.

    Parameter names are sorted before serialization so the same parameter set
    in any order yields the same key. Values must be JSON primitives; JSON
    keeps ``1``, ``"1"``, ``true`` and ``null`` apart, so distinct requests
    never share a key.
    """
    if not isinstance(route, str) or not route:
        raise CacheKeyError("route must be a non-empty string")

    params = params or {}
    for name, value in params.items():
        if not isinstance(name, str):
            raise CacheKeyError(f"parameter name {name!r} is not a string")
        if not isinstance(value, _PRIMITIVES):
            raise CacheKeyError(
                f"parameter {name!r} has non-primitive value of type {type(value).__name__}"
            )

    ordered = {name: params[name] for name in sorted(params)}
    return f"{route}:{json.dumps(ordered, separators=(',', ':'), ensure_ascii=False)}"


@dataclass(slots=True)
class CacheEntry:
    value: Any
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    size: int
    max_entries: int
    keys: list[str]


class ResponseCache:
    """In-memory TTL cache with lazy eviction, LRU capacity bound and a sweeper.

    ``clock`` must be monotonic; tests pass a fake one to simulate expiry.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if default_ttl < 0:
            raise ValueError("default_ttl must be non-negative")
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if sweep_interval <= 0:
            raise ValueError("sweep_interval must be positive")

        self.default_ttl = default_ttl
        self.max_entries = max_entries
        self.sweep_interval = sweep_interval
        self._clock = clock
        # Insertion/access order doubles as LRU order: oldest first.
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._sweeper: asyncio.Task[None] | None = None

    # ── Facade ───────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value if present and fresh, else ``default``."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                return default
            self._entries.move_to_end(key)
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Store ``value`` for ``ttl`` seconds (default TTL when omitted).

        A zero ttl stores an already-stale entry that is never returned.
        """
        if ttl is None:
            ttl = self.default_ttl
        if ttl < 0:
            raise ValueError("ttl must be non-negative")

        with self._lock:
            now = self._clock()
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_entries:
                self._evict_for_insert(now)
            self._entries[key] = CacheEntry(value=value, expires_at=now + ttl)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def invalidate_route(self, route: str) -> int:
        """Drop every entry whose key was built for ``route``."""
        # build_key always serializes params as a JSON object, so "route:{" cannot
        # match a longer route that itself contains a colon.
        prefix = f"{route}:{{"
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.debug("Invalidated %d cached entries for route %s", len(doomed), route)
        return len(doomed)

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                max_entries=self.max_entries,
                keys=list(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ── Eviction ─────────────────────────────────────────────

    def sweep(self) -> int:
        """Evict all stale entries now. Returns the number removed."""
        with self._lock:
            return self._purge_stale(self._clock())

    def _purge_stale(self, now: float) -> int:
        stale = [key for key, entry in self._entries.items() if now >= entry.expires_at]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def _evict_for_insert(self, now: float) -> None:
        # Caller holds the lock.
        if self._purge_stale(now):
            return
        lru_key, _ = self._entries.popitem(last=False)
        logger.debug("Cache full (%d entries), evicted %s", self.max_entries, lru_key)

    # ── Sweeper lifecycle ────────────────────────────────────

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start(self) -> None:
        """Start the periodic sweep on the running event loop (idempotent)."""
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._sweeper = loop.create_task(self._sweep_loop(), name="response-cache-sweeper")
        logger.info("Response cache sweeper started (interval %.0fs)", self.sweep_interval)

    async def stop(self) -> None:
        """Cancel the sweeper and wait for it to finish."""
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Response cache sweeper stopped")

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                removed = self.sweep()
            except Exception:
                logger.exception("Response cache sweep failed")
                continue
            if removed:
                logger.debug("Swept %d expired cache entries", removed)
