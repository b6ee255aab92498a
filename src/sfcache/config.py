"""
Configuration management using pydantic-settings.

Loads cache tuning knobs from environment variables and .env files.
All sizes are bytes and all durations are seconds.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024

DEFAULT_TTL_S = 15 * 60
DEFAULT_RESPONSE_SWEEP_INTERVAL_S = 5 * 60
DEFAULT_IMAGE_SWEEP_INTERVAL_S = 10 * 60
DEFAULT_IMAGE_MAX_BYTES = 10 * MIB
DEFAULT_IMAGE_MAX_ITEM_BYTES = 2 * MIB
DEFAULT_IMAGE_KEY_PREFIX = "img_cache_"
DEFAULT_FETCH_TIMEOUT_S = 30.0


class Settings(BaseSettings):
    """Cache settings loaded from environment variables.

    Optional:
        RESPONSE_CACHE_TTL_S: Default TTL for cached API responses
        RESPONSE_CACHE_SWEEP_INTERVAL_S: Interval between response cache sweeps
        IMAGE_CACHE_TTL_S: Default TTL for cached images
        IMAGE_CACHE_MAX_BYTES: Global capacity of the image cache
        IMAGE_CACHE_MAX_ITEM_BYTES: Largest single image that will be cached
        IMAGE_CACHE_SWEEP_INTERVAL_S: Interval between image cache sweeps
        IMAGE_CACHE_KEY_PREFIX: Namespace prefix for image storage keys
        IMAGE_CACHE_DB_PATH: SQLite file backing the durable image store
        IMAGE_FETCH_TIMEOUT_S: HTTP timeout for image downloads
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Response cache
    RESPONSE_CACHE_TTL_S: float = Field(
        default=DEFAULT_TTL_S, gt=0, description="Default TTL for cached API responses"
    )
    RESPONSE_CACHE_SWEEP_INTERVAL_S: float = Field(
        default=DEFAULT_RESPONSE_SWEEP_INTERVAL_S, gt=0, description="Seconds between response cache sweeps"
    )

    # Image cache
    IMAGE_CACHE_TTL_S: float = Field(
        default=DEFAULT_TTL_S, gt=0, description="Default TTL for cached images"
    )
    IMAGE_CACHE_MAX_BYTES: int = Field(
        default=DEFAULT_IMAGE_MAX_BYTES, gt=0, description="Global image cache capacity in bytes"
    )
    IMAGE_CACHE_MAX_ITEM_BYTES: int = Field(
        default=DEFAULT_IMAGE_MAX_ITEM_BYTES, gt=0, description="Per-image size limit in bytes"
    )
    IMAGE_CACHE_SWEEP_INTERVAL_S: float = Field(
        default=DEFAULT_IMAGE_SWEEP_INTERVAL_S, gt=0, description="Seconds between image cache sweeps"
    )
    IMAGE_CACHE_KEY_PREFIX: str = Field(
        default=DEFAULT_IMAGE_KEY_PREFIX, description="Namespace prefix for image storage keys"
    )
    IMAGE_CACHE_DB_PATH: Path = Field(
        default=Path(".cache/images.db"), description="Durable image store file"
    )
    IMAGE_FETCH_TIMEOUT_S: float = Field(
        default=DEFAULT_FETCH_TIMEOUT_S, gt=0, description="HTTP timeout for image downloads"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("IMAGE_CACHE_KEY_PREFIX")
    @classmethod
    def validate_key_prefix(cls, v: str) -> str:
        """Reject an empty prefix, which would let clear() touch foreign keys."""
        if not v.strip():
            raise ValueError("IMAGE_CACHE_KEY_PREFIX must be non-empty")
        return v

    @model_validator(mode="after")
    def validate_image_limits(self) -> Settings:
        """Ensure a single image can never exceed the global capacity."""
        if self.IMAGE_CACHE_MAX_ITEM_BYTES > self.IMAGE_CACHE_MAX_BYTES:
            raise ValueError(
                "IMAGE_CACHE_MAX_ITEM_BYTES must not exceed IMAGE_CACHE_MAX_BYTES"
            )
        return self

    def ensure_directories(self) -> None:
        """Create the directory holding the image store if it doesn't exist."""
        self.IMAGE_CACHE_DB_PATH.parent.mkdir(parents=True, exist_ok=True)

    def display(self) -> dict[str, str | int | float]:
        """Return settings as a flat dict for display."""
        return {
            "RESPONSE_CACHE_TTL_S": self.RESPONSE_CACHE_TTL_S,
            "RESPONSE_CACHE_SWEEP_INTERVAL_S": self.RESPONSE_CACHE_SWEEP_INTERVAL_S,
            "IMAGE_CACHE_TTL_S": self.IMAGE_CACHE_TTL_S,
            "IMAGE_CACHE_MAX_BYTES": self.IMAGE_CACHE_MAX_BYTES,
            "IMAGE_CACHE_MAX_ITEM_BYTES": self.IMAGE_CACHE_MAX_ITEM_BYTES,
            "IMAGE_CACHE_SWEEP_INTERVAL_S": self.IMAGE_CACHE_SWEEP_INTERVAL_S,
            "IMAGE_CACHE_KEY_PREFIX": self.IMAGE_CACHE_KEY_PREFIX,
            "IMAGE_CACHE_DB_PATH": str(self.IMAGE_CACHE_DB_PATH),
            "IMAGE_FETCH_TIMEOUT_S": self.IMAGE_FETCH_TIMEOUT_S,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
