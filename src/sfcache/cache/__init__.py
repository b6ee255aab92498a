"""
Cache package for the storefront.

This package provides:
- Response cache (kv_cache.py): in-memory TTL cache for API responses
- Image cache (image_cache.py): durable, size-bounded cache of data URIs
- Storage backends (storage.py): string key/value stores for the image cache
- Sweeper and background task helpers (sweeper.py, tasks.py)
"""

from sfcache.cache.base import CacheProtocol
from sfcache.cache.image_cache import ImageCache, create_image_cache, encode_data_uri
from sfcache.cache.kv_cache import ResponseCache, create_response_cache
from sfcache.cache.storage import KeyValueStorage, MemoryStorage, SQLiteStorage
from sfcache.cache.sweeper import PeriodicSweeper
from sfcache.cache.tasks import BackgroundTasks

__all__ = [
    "BackgroundTasks",
    "CacheProtocol",
    "ImageCache",
    "KeyValueStorage",
    "MemoryStorage",
    "PeriodicSweeper",
    "ResponseCache",
    "SQLiteStorage",
    "create_image_cache",
    "create_response_cache",
    "encode_data_uri",
]
