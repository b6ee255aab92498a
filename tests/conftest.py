"""
Pytest configuration and fixtures for storefront cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Generator
from unittest.mock import patch

import httpx
import pytest

from sfcache.cache.image_cache import ImageCache
from sfcache.cache.kv_cache import ResponseCache
from sfcache.cache.storage import MemoryStorage
from sfcache.config import Settings, clear_settings_cache

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56


class FakeClock:
    """Manually advanced clock, in epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a controllable clock."""
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    """Provide an empty in-memory key/value store."""
    return MemoryStorage()


@pytest.fixture
def response_cache(clock: FakeClock) -> ResponseCache:
    """Provide a response cache on the fake clock."""
    return ResponseCache(default_ttl_s=900, clock=clock)


@pytest.fixture
def image_handler() -> Callable[[httpx.Request], httpx.Response]:
    """Default transport handler: serve a small PNG for every request."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

    return handler


@pytest.fixture
def http_client(
    image_handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    """Provide an httpx client backed by a mock transport."""
    return httpx.AsyncClient(transport=httpx.MockTransport(image_handler))


@pytest.fixture
def image_cache(
    storage: MemoryStorage,
    clock: FakeClock,
    http_client: httpx.AsyncClient,
) -> ImageCache:
    """Provide an image cache with small limits for capacity tests."""
    return ImageCache(
        storage,
        default_ttl_s=900,
        max_bytes=1000,
        max_item_bytes=400,
        clock=clock,
        http_client=http_client,
    )


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "RESPONSE_CACHE_TTL_S": "600",
        "RESPONSE_CACHE_SWEEP_INTERVAL_S": "120",
        "IMAGE_CACHE_TTL_S": "300",
        "IMAGE_CACHE_MAX_BYTES": "4096",
        "IMAGE_CACHE_MAX_ITEM_BYTES": "1024",
        "IMAGE_CACHE_KEY_PREFIX": "test_img_",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(
    mock_env_vars: dict[str, str], temp_dir: Path
) -> Generator[Settings, None, None]:
    """Provide a Settings instance with the image store under temp_dir."""
    with patch.dict(
        os.environ,
        {"IMAGE_CACHE_DB_PATH": str(temp_dir / "cache" / "images.db")},
    ):
        clear_settings_cache()
        from sfcache.config import get_settings

        settings = get_settings()
        yield settings
        clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
