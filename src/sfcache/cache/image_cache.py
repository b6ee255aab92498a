"""
Durable, size-bounded image cache.

Images are downloaded once, encoded as base64 data URIs and written to a
string key/value store, so a renderer can use the cached value directly as
an image source. Entries are addressed by source URL; the storage key is a
fixed namespace prefix plus a truncated SHA-256 of the URL, which keeps keys
bounded and lets clear()/sweeps skip unrelated data in the same store.

Capacity rules:
- An item larger than max_item_bytes is never stored.
- Before a write that would push the namespace past max_bytes, expired and
  corrupt records are swept, then live entries are evicted oldest
  created_at first until exactly enough space is free.

Eviction follows write recency only. Reads do not bump an entry; a popular
image that gets evicted is simply downloaded again.

Every failure (storage, decoding, network) degrades to a miss or to the
original URL. Nothing here raises to the caller.
"""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

import httpx

from sfcache.cache.base import CacheProtocol
from sfcache.cache.storage import KeyValueStorage, SQLiteStorage
from sfcache.cache.sweeper import PeriodicSweeper
from sfcache.cache.tasks import BackgroundTasks
from sfcache.config import (
    DEFAULT_FETCH_TIMEOUT_S,
    DEFAULT_IMAGE_KEY_PREFIX,
    DEFAULT_IMAGE_MAX_BYTES,
    DEFAULT_IMAGE_MAX_ITEM_BYTES,
    DEFAULT_IMAGE_SWEEP_INTERVAL_S,
    DEFAULT_TTL_S,
    MIB,
    Settings,
    get_settings,
)
from sfcache.exceptions import (
    ConfigurationError,
    EntryDecodeError,
    ImageFetchError,
    StorageError,
)
from sfcache.logging import get_logger, log_context
from sfcache.types import (
    Clock,
    ImageCacheEntry,
    ImageCacheStats,
    encoded_size,
    system_clock,
)

logger = get_logger(__name__)

USER_AGENT = "sfcache/0.1 (+image-cache)"

# Hex digits of the URL digest kept in the storage key.
KEY_DIGEST_LENGTH = 40

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class StoredRecord:
    """One record under the namespace, decoded if possible."""

    key: str
    entry: ImageCacheEntry | None  # None when the record is malformed
    size: int


def encode_data_uri(content: bytes, content_type: str | None) -> str:
    """Encode raw image bytes as a self-describing base64 data URI."""
    mime = (content_type or "").split(";")[0].strip() or DEFAULT_CONTENT_TYPE
    payload = base64.b64encode(content).decode("ascii")
    return f"data:{mime};base64,{payload}"


class ImageCache(CacheProtocol):
    """Image cache over a string key/value store."""

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        default_ttl_s: float = DEFAULT_TTL_S,
        max_bytes: int = DEFAULT_IMAGE_MAX_BYTES,
        max_item_bytes: int = DEFAULT_IMAGE_MAX_ITEM_BYTES,
        key_prefix: str = DEFAULT_IMAGE_KEY_PREFIX,
        sweep_interval_s: float = DEFAULT_IMAGE_SWEEP_INTERVAL_S,
        fetch_timeout_s: float = DEFAULT_FETCH_TIMEOUT_S,
        clock: Clock = system_clock,
        http_client: httpx.AsyncClient | None = None,
        tasks: BackgroundTasks | None = None,
        name: str = "image",
    ) -> None:
        """Initialize the image cache.

        Args:
            storage: Backing key/value store, possibly shared with other data.
            default_ttl_s: TTL applied when set_cached_image() gets none.
            max_bytes: Global capacity of the namespace in bytes.
            max_item_bytes: Largest single encoded image that will be stored.
            key_prefix: Namespace prefix for every storage key.
            sweep_interval_s: Interval for the sweeper started by start().
            fetch_timeout_s: Timeout for the HTTP client created on demand.
            clock: Returns the current time in epoch seconds.
            http_client: Client to download with. If None, one is created
                lazily and closed by close().
            tasks: Runner for background downloads triggered by use_image().
            name: Label used in logs.
        """
        if not key_prefix:
            raise ConfigurationError("key_prefix must be non-empty")
        if max_item_bytes > max_bytes:
            raise ConfigurationError(
                "max_item_bytes must not exceed max_bytes",
                context={"max_item_bytes": max_item_bytes, "max_bytes": max_bytes},
            )
        if default_ttl_s <= 0:
            raise ConfigurationError(
                "default_ttl_s must be > 0", context={"default_ttl_s": default_ttl_s}
            )

        self.storage = storage
        self.default_ttl_s = default_ttl_s
        self.max_bytes = max_bytes
        self.max_item_bytes = max_item_bytes
        self.key_prefix = key_prefix
        self.fetch_timeout_s = fetch_timeout_s
        self.name = name
        self.tasks = tasks or BackgroundTasks()
        self._now = clock
        self._client = http_client
        self._owns_client = http_client is None
        self._sweeper = PeriodicSweeper(name, sweep_interval_s, self.cleanup_expired_images)

    # --- keys and records ---

    def cache_key(self, url: str) -> str:
        """Derive the namespaced storage key for a URL.

        Truncating the digest bounds key length; at 160 bits a collision
        between two image URLs is not a practical concern.
        """
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.key_prefix + digest[:KEY_DIGEST_LENGTH]

    def _namespace_keys(self) -> list[str]:
        return [key for key in self.storage.keys() if key.startswith(self.key_prefix)]

    def _scan(self) -> list[StoredRecord]:
        """Read every record under the namespace.

        Raises:
            StorageError: If the backend fails.
        """
        records: list[StoredRecord] = []
        for key in self._namespace_keys():
            raw = self.storage.get_item(key)
            if raw is None:
                continue
            try:
                entry = ImageCacheEntry.from_record(raw, key=key)
            except EntryDecodeError:
                records.append(StoredRecord(key=key, entry=None, size=len(raw)))
                continue
            records.append(
                StoredRecord(key=key, entry=entry, size=encoded_size(entry.encoded_content))
            )
        return records

    def _remove_quietly(self, key: str) -> None:
        try:
            self.storage.remove_item(key)
        except StorageError as e:
            logger.warning("Failed to remove image cache record", key=key, error=str(e))

    # --- lookup / store ---

    def get_cached_image(self, url: str | None) -> str | None:
        """Return the cached data URI for url, or None if absent or expired."""
        if not url:
            return None

        key = self.cache_key(url)
        try:
            raw = self.storage.get_item(key)
        except StorageError as e:
            logger.warning("Failed to read cached image", url=url, error=str(e))
            return None

        if raw is None:
            return None

        try:
            entry = ImageCacheEntry.from_record(raw, key=key)
        except EntryDecodeError as e:
            logger.warning("Dropping malformed image cache record", url=url, error=str(e))
            self._remove_quietly(key)
            return None

        if entry.is_expired(self._now()):
            self._remove_quietly(key)
            logger.debug("Image cache expired", url=url)
            return None

        logger.debug("Image cache hit", url=url)
        return entry.encoded_content

    def set_cached_image(
        self,
        url: str,
        encoded_content: str,
        ttl_s: float | None = None,
    ) -> bool:
        """Store an encoded image, evicting old entries if needed.

        Returns:
            True if stored. False for empty input, oversized content or a
            storage failure.
        """
        if not url or not encoded_content:
            return False

        size = encoded_size(encoded_content)
        if size > self.max_item_bytes:
            logger.warning(
                "Image too large to cache",
                url=url,
                size_mb=round(size / MIB, 2),
                limit_mb=round(self.max_item_bytes / MIB, 2),
            )
            return False

        key = self.cache_key(url)
        ttl = self.default_ttl_s if ttl_s is None else ttl_s

        try:
            records = [r for r in self._scan() if r.key != key]
            total = sum(r.size for r in records)
            if total + size > self.max_bytes:
                self._make_room(records, total + size - self.max_bytes)

            entry = ImageCacheEntry.create(encoded_content, now=self._now(), ttl_s=ttl)
            self.storage.set_item(key, entry.to_record())
        except StorageError as e:
            logger.warning("Failed to cache image", url=url, error=str(e))
            return False

        logger.debug("Image cached", url=url, size=size, ttl_s=ttl)
        return True

    def _make_room(self, records: list[StoredRecord], required: int) -> int:
        """Free at least ``required`` bytes, stopping as soon as that is met.

        Expired and corrupt records go first since they are dead weight;
        the remainder comes from live entries in created_at order.

        Returns:
            Bytes freed.
        """
        now = self._now()
        freed = 0
        live: list[StoredRecord] = []

        for record in records:
            if record.entry is None or record.entry.is_expired(now):
                self.storage.remove_item(record.key)
                freed += record.size
            else:
                live.append(record)

        evicted = 0
        live.sort(key=lambda r: r.entry.created_at)
        for record in live:
            if freed >= required:
                break
            self.storage.remove_item(record.key)
            freed += record.entry.size_bytes
            evicted += 1

        logger.debug(
            "Evicted images to free space",
            required=required,
            freed=freed,
            evicted=evicted,
        )
        return freed

    # --- network ---

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client. A client created here is closed by close()."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.fetch_timeout_s,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
            self._owns_client = True
        return self._client

    async def _download(self, url: str) -> httpx.Response:
        """GET url and return the successful response.

        Raises:
            ImageFetchError: On transport errors or non-2xx status.
        """
        client = self._get_client()
        try:
            response = await client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ImageFetchError(
                f"HTTP error! status: {e.response.status_code}",
                context={"url": url, "status_code": e.response.status_code},
            ) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ImageFetchError(
                f"Failed to fetch {url}",
                context={"url": url, "error": f"{type(e).__name__}: {e}"},
            ) from e
        except Exception as e:
            raise ImageFetchError(
                f"Unexpected error fetching {url}",
                context={"url": url, "error": f"{type(e).__name__}: {e}"},
            ) from e
        return response

    async def fetch_and_cache_image(self, url: str) -> str:
        """Ensure url is cached and return the best image source available.

        Returns the cached data URI if present. Otherwise downloads the image;
        on any network failure or if the body is over the per-item limit the
        original url is returned unchanged. A failure to store the encoded
        image does not affect the return value.

        Concurrent calls for the same url are not de-duplicated; each
        downloads and the last write wins.
        """
        cached = self.get_cached_image(url)
        if cached:
            return cached

        with log_context(cache=self.name, operation="fetch"):
            try:
                response = await self._download(url)
            except ImageFetchError as e:
                logger.error("Failed to fetch and cache image", url=url, error=str(e))
                return url

            body = response.content
            if len(body) > self.max_item_bytes:
                logger.warning(
                    "Image too large to cache, returning original URL",
                    url=url,
                    size=len(body),
                )
                return url

            encoded = encode_data_uri(body, response.headers.get("content-type"))
            try:
                self.set_cached_image(url, encoded)
            except Exception:  # noqa: BLE001
                logger.exception("Unexpected error caching image", url=url)

        return encoded

    def use_image(self, url: str | None) -> str | None:
        """Synchronous accessor for rendering code.

        Returns the cached data URI when present. Otherwise schedules a
        background download and returns the original url at once, so the
        caller always has something to display.
        """
        if not url:
            return None

        cached = self.get_cached_image(url)
        if cached:
            return cached

        self.tasks.submit(
            lambda: self.fetch_and_cache_image(url),
            name=f"sfcache-image-fetch:{self.cache_key(url)}",
        )
        return url

    # --- maintenance ---

    def invalidate(self, url: str) -> None:
        """Drop the entry for one URL; no-op if absent."""
        if not url:
            return
        self._remove_quietly(self.cache_key(url))

    def clear_image_cache(self) -> int:
        """Remove every record under this cache's namespace, and nothing else.

        Returns:
            Number of records removed.
        """
        removed = 0
        try:
            for key in self._namespace_keys():
                self.storage.remove_item(key)
                removed += 1
        except StorageError as e:
            logger.error("Failed to clear image cache", error=str(e), removed=removed)
            return removed

        logger.debug("Image cache cleared", removed=removed)
        return removed

    def cleanup_expired_images(self) -> int:
        """Remove expired and undecodable records. Returns the count removed."""
        now = self._now()
        removed = 0
        try:
            for record in self._scan():
                if record.entry is None or record.entry.is_expired(now):
                    self.storage.remove_item(record.key)
                    removed += 1
        except StorageError as e:
            logger.error("Failed to cleanup expired images", error=str(e))
            return removed

        if removed:
            logger.debug("Cleaned up expired images", removed=removed)
        return removed

    def get_image_cache_size(self) -> int:
        """Total bytes stored under the namespace, recomputed from content."""
        try:
            return sum(record.size for record in self._scan())
        except StorageError as e:
            logger.error("Failed to calculate cache size", error=str(e))
            return 0

    def get_image_cache_stats(self) -> ImageCacheStats:
        """Snapshot of counts and usage. Never removes anything."""
        now = self._now()
        try:
            records = self._scan()
        except StorageError as e:
            logger.error("Failed to collect image cache stats", error=str(e))
            records = []

        expired = sum(
            1 for r in records if r.entry is not None and r.entry.is_expired(now)
        )
        return ImageCacheStats(
            total_images=len(records),
            active_images=len(records) - expired,
            expired_images=expired,
            total_size=sum(r.size for r in records),
            max_size=self.max_bytes,
        )

    # CacheProtocol aliases, keyed by source URL.

    def get(self, key: str) -> str | None:
        return self.get_cached_image(key)

    def set(self, key: str, value: str, ttl_s: float | None = None) -> bool:
        return self.set_cached_image(key, value, ttl_s)

    def clear(self) -> None:
        self.clear_image_cache()

    def cleanup_expired(self) -> int:
        return self.cleanup_expired_images()

    def stats(self) -> ImageCacheStats:
        return self.get_image_cache_stats()

    # --- lifecycle ---

    def start(self) -> None:
        """Start the periodic expiry sweep on the running event loop."""
        self._sweeper.start()

    async def stop(self) -> None:
        """Stop the sweep and wait for in-flight background downloads."""
        await self._sweeper.stop()
        await self.tasks.drain()

    async def close(self) -> None:
        """Stop background work and close the HTTP client if owned."""
        await self._sweeper.stop()
        await self.tasks.cancel_all()
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


def create_image_cache(
    settings: Settings | None = None,
    storage: KeyValueStorage | None = None,
    clock: Clock = system_clock,
    http_client: httpx.AsyncClient | None = None,
    tasks: BackgroundTasks | None = None,
) -> ImageCache:
    """Build an ImageCache from settings (environment by default).

    Uses a SQLiteStorage at IMAGE_CACHE_DB_PATH unless storage is given.
    """
    settings = settings or get_settings()
    if storage is None:
        settings.ensure_directories()
        storage = SQLiteStorage(settings.IMAGE_CACHE_DB_PATH)

    return ImageCache(
        storage,
        default_ttl_s=settings.IMAGE_CACHE_TTL_S,
        max_bytes=settings.IMAGE_CACHE_MAX_BYTES,
        max_item_bytes=settings.IMAGE_CACHE_MAX_ITEM_BYTES,
        key_prefix=settings.IMAGE_CACHE_KEY_PREFIX,
        sweep_interval_s=settings.IMAGE_CACHE_SWEEP_INTERVAL_S,
        fetch_timeout_s=settings.IMAGE_FETCH_TIMEOUT_S,
        clock=clock,
        http_client=http_client,
        tasks=tasks,
    )
