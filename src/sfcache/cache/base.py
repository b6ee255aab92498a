"""
Base classes for caching.

Both caches share one contract: look a value up by key, store it with a
TTL, drop one or many keys, and report stats. Every operation here is
synchronous and runs to completion without awaiting, so two logical callers
can only interleave between calls, never inside one.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class CacheProtocol(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Get a live value from the cache, or None if absent or expired."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any, ttl_s: float | None = None) -> Any:
        """Store a value, replacing any existing entry for the key."""
        ...

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """Remove one entry; no-op if absent."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry owned by this cache."""
        ...

    @abstractmethod
    def cleanup_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        ...

    @abstractmethod
    def stats(self) -> Any:
        """Return a snapshot of the cache without mutating it."""
        ...
