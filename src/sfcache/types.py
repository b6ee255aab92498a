"""
Core types for the storefront cache.

This module defines the data structures shared by both caches:
- Frozen dataclasses for cache entries (CacheEntry, ImageCacheEntry)
- Stats snapshots returned by stats() (ResponseCacheStats, ImageCacheStats)
- The Clock alias and the default wall clock
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Generic, TypeVar

import orjson

from sfcache.exceptions import EntryDecodeError

T = TypeVar("T")

# Returns the current time as epoch seconds.
Clock = Callable[[], float]


def system_clock() -> float:
    """Default clock: wall-clock epoch seconds."""
    return time.time()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Immutable response cache entry.

    A new set() on the same key replaces the entry rather than mutating it,
    so both timestamps always describe the latest write.
    """

    data: T
    created_at: float
    expires_at: float

    @classmethod
    def create(cls, data: T, now: float, ttl_s: float) -> CacheEntry[T]:
        """Factory method to stamp an entry with its creation and expiry time."""
        return cls(data=data, created_at=now, expires_at=now + ttl_s)

    def is_expired(self, now: float) -> bool:
        """An entry is live while now <= expires_at."""
        return now > self.expires_at


@dataclass(frozen=True)
class ImageCacheEntry:
    """Immutable image cache entry as persisted in the key/value store.

    size_bytes is computed once at write time and trusted for eviction.
    """

    encoded_content: str  # data URI, usable directly as an image source
    created_at: float
    expires_at: float
    size_bytes: int

    @classmethod
    def create(cls, encoded_content: str, now: float, ttl_s: float) -> ImageCacheEntry:
        """Factory method to create an entry with its byte size computed."""
        return cls(
            encoded_content=encoded_content,
            created_at=now,
            expires_at=now + ttl_s,
            size_bytes=encoded_size(encoded_content),
        )

    def is_expired(self, now: float) -> bool:
        """An entry is live while now <= expires_at."""
        return now > self.expires_at

    def to_record(self) -> str:
        """Serialize to the JSON string stored in the key/value store."""
        return orjson.dumps(asdict(self)).decode("utf-8")

    @classmethod
    def from_record(cls, raw: str, key: str = "") -> ImageCacheEntry:
        """Deserialize a stored record.

        Raises:
            EntryDecodeError: If the record is not valid JSON or lacks fields.
        """
        try:
            row = orjson.loads(raw)
            return cls(
                encoded_content=str(row["encoded_content"]),
                created_at=float(row["created_at"]),
                expires_at=float(row["expires_at"]),
                size_bytes=int(row["size_bytes"]),
            )
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise EntryDecodeError(
                "Malformed image cache record",
                context={"key": key, "error": str(e)},
            ) from e


def encoded_size(encoded_content: str) -> int:
    """Byte length of an encoded image string."""
    return len(encoded_content.encode("utf-8"))


@dataclass(frozen=True)
class ResponseCacheStats:
    """Point-in-time snapshot of the response cache."""

    total_entries: int
    active_entries: int
    expired_entries: int
    oldest_entry_timestamp: float | None
    newest_entry_timestamp: float | None
    keys: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)


@dataclass(frozen=True)
class ImageCacheStats:
    """Point-in-time snapshot of the image cache."""

    total_images: int
    active_images: int
    expired_images: int
    total_size: int
    max_size: int

    @property
    def total_size_mb(self) -> float:
        """Total stored size in MiB, rounded to 2 places."""
        return round(self.total_size / 1024 / 1024, 2)

    @property
    def max_size_mb(self) -> float:
        """Configured capacity in MiB, rounded to 2 places."""
        return round(self.max_size / 1024 / 1024, 2)

    @property
    def usage_percent(self) -> float:
        """Share of capacity in use, rounded to 1 place."""
        if self.max_size <= 0:
            return 0.0
        return round(self.total_size / self.max_size * 100, 1)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "total_images": self.total_images,
            "active_images": self.active_images,
            "expired_images": self.expired_images,
            "total_size": self.total_size,
            "total_size_mb": self.total_size_mb,
            "max_size": self.max_size,
            "max_size_mb": self.max_size_mb,
            "usage_percent": self.usage_percent,
        }
