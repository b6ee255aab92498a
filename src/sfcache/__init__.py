"""
Client-side caching layer for the device-resale storefront.

Two independent caches:
- ResponseCache: in-memory TTL cache for JSON API responses
- ImageCache: durable, size-bounded TTL cache of images as data URIs
"""

from __future__ import annotations

__version__ = "0.1.0"

from sfcache.cache import (
    ImageCache,
    ResponseCache,
    create_image_cache,
    create_response_cache,
)

__all__ = [
    "ImageCache",
    "ResponseCache",
    "__version__",
    "create_image_cache",
    "create_response_cache",
]
