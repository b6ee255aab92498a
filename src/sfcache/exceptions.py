"""
Custom exception hierarchy for the storefront cache.

All exceptions inherit from CacheError, which provides optional context
for structured error handling and logging. Most of these never leave the
cache: they are raised by storage and decoding helpers and caught at the
point of use, where the failure degrades to a cache miss.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when cache configuration is invalid.

    Examples:
        - Per-item limit larger than global capacity
        - Non-positive TTL or sweep interval
        - Empty image key prefix
    """

    pass


class StorageError(CacheError):
    """Raised when the image storage backend fails to read or write.

    Context should include:
        - key: The storage key being accessed
        - operation: get, set, remove or keys
    """

    pass


class StorageQuotaExceededError(StorageError):
    """Raised when a write would exceed the storage backend's quota.

    Context should include:
        - key: The storage key being written
        - quota_bytes: The configured quota
        - required_bytes: Total bytes the write would need
    """

    pass


class EntryDecodeError(CacheError):
    """Raised when a stored image record cannot be deserialized.

    Context should include:
        - key: The storage key of the malformed record
    """

    pass


class ImageFetchError(CacheError):
    """Raised when downloading an image fails.

    Context should include:
        - url: The image URL
        - status_code: HTTP status code if applicable
    """

    pass
