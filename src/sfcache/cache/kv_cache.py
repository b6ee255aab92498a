"""
In-memory TTL cache for API responses.

Holds JSON-serializable payloads returned by the catalog, brand and model
endpoints under caller-supplied keys such as ``"catalog_brands_cat_42"``.
The cache imposes no structure on keys beyond string equality and regex
matching.

Expiry is checked lazily on every get(), so a stale entry is never served
even if the periodic sweep is not running. Returned values are the stored
objects themselves; callers must not mutate them.
"""

from __future__ import annotations

import re
from typing import Any, Awaitable, Callable, TypeVar

from sfcache.cache.base import CacheProtocol
from sfcache.cache.sweeper import PeriodicSweeper
from sfcache.config import (
    DEFAULT_RESPONSE_SWEEP_INTERVAL_S,
    DEFAULT_TTL_S,
    Settings,
    get_settings,
)
from sfcache.exceptions import ConfigurationError
from sfcache.logging import get_logger
from sfcache.types import CacheEntry, Clock, ResponseCacheStats, system_clock

logger = get_logger(__name__)

T = TypeVar("T")


class ResponseCache(CacheProtocol):
    """Process-local key -> CacheEntry map with per-entry TTL."""

    def __init__(
        self,
        default_ttl_s: float = DEFAULT_TTL_S,
        sweep_interval_s: float = DEFAULT_RESPONSE_SWEEP_INTERVAL_S,
        clock: Clock = system_clock,
        name: str = "response",
    ) -> None:
        """Initialize the cache.

        Args:
            default_ttl_s: TTL applied when set() is called without one.
            sweep_interval_s: Interval for the sweeper started by start().
            clock: Returns the current time in epoch seconds.
            name: Label used in logs.
        """
        if default_ttl_s <= 0:
            raise ConfigurationError(
                "default_ttl_s must be > 0", context={"default_ttl_s": default_ttl_s}
            )
        self.default_ttl_s = default_ttl_s
        self.name = name
        self._now = clock
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._sweeper = PeriodicSweeper(name, sweep_interval_s, self.cleanup_expired)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Any | None:
        """Return the live value for key, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._now()):
            del self._entries[key]
            logger.debug("Cache expired", cache=self.name, key=key)
            return None

        logger.debug("Cache hit", cache=self.name, key=key)
        return entry.data

    def set(self, key: str, value: Any, ttl_s: float | None = None) -> None:
        """Store value under key, fully replacing any previous entry."""
        ttl = self.default_ttl_s if ttl_s is None else ttl_s
        entry = CacheEntry.create(value, now=self._now(), ttl_s=ttl)
        self._entries[key] = entry
        logger.debug(
            "Cache set", cache=self.name, key=key, ttl_s=ttl, expires_at=entry.expires_at
        )

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            logger.debug("Cache invalidated", cache=self.name, key=key)

    def invalidate_pattern(self, pattern: str | re.Pattern[str]) -> int:
        """Remove every key matching pattern.

        A string pattern is compiled as a regular expression and matched with
        search semantics, so anchors must be explicit (``"^catalog_brand"``).

        Returns:
            Number of entries removed.
        """
        regex = re.compile(pattern) if isinstance(pattern, str) else pattern
        matched = [key for key in self._entries if regex.search(key)]
        for key in matched:
            del self._entries[key]

        if matched:
            logger.debug(
                "Cache invalidated by pattern",
                cache=self.name,
                pattern=regex.pattern,
                removed=len(matched),
            )
        return len(matched)

    def clear(self) -> None:
        size = len(self._entries)
        self._entries.clear()
        logger.debug("Cache cleared", cache=self.name, removed=size)

    def stats(self) -> ResponseCacheStats:
        """Partition entries by liveness. Never evicts anything."""
        now = self._now()
        entries = list(self._entries.items())
        expired = sum(1 for _, entry in entries if entry.is_expired(now))
        created = [entry.created_at for _, entry in entries]

        return ResponseCacheStats(
            total_entries=len(entries),
            active_entries=len(entries) - expired,
            expired_entries=expired,
            oldest_entry_timestamp=min(created) if created else None,
            newest_entry_timestamp=max(created) if created else None,
            keys=[key for key, _ in entries],
        )

    def cleanup_expired(self) -> int:
        now = self._now()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug("Cache cleanup", cache=self.name, removed=len(expired))
        return len(expired)

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl_s: float | None = None,
    ) -> T:
        """Read-through helper: return the cached value or load and store it.

        Loader exceptions propagate and nothing is stored. A None result is
        returned but not cached, since None means absent.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await loader()
        if value is not None:
            self.set(key, value, ttl_s)
        return value

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        self._sweeper.start()

    async def stop(self) -> None:
        """Stop the periodic expiry sweep."""
        await self._sweeper.stop()


def create_response_cache(
    settings: Settings | None = None,
    clock: Clock = system_clock,
) -> ResponseCache:
    """Build a ResponseCache from settings (environment by default)."""
    settings = settings or get_settings()
    return ResponseCache(
        default_ttl_s=settings.RESPONSE_CACHE_TTL_S,
        sweep_interval_s=settings.RESPONSE_CACHE_SWEEP_INTERVAL_S,
        clock=clock,
    )
