"""
Tests for structured logging helpers.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from sfcache.logging import (
    JSONFormatter,
    get_cache_name,
    get_logger,
    get_operation,
    log_context,
    setup_logging,
)


class ListHandler(logging.Handler):
    """Collects records for inspection."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)


def capture(name: str) -> tuple[ListHandler, logging.Logger]:
    handler = ListHandler()
    std_logger = logging.getLogger(name)
    std_logger.setLevel(logging.DEBUG)
    std_logger.addHandler(handler)
    return handler, std_logger


class TestLogContext:
    """Tests for log_context()."""

    def test_sets_and_restores(self) -> None:
        """Test that context is scoped to the with-block."""
        assert get_cache_name() is None

        with log_context(cache="image", operation="sweep"):
            assert get_cache_name() == "image"
            assert get_operation() == "sweep"
            with log_context(operation="fetch"):
                assert get_cache_name() == "image"
                assert get_operation() == "fetch"
            assert get_operation() == "sweep"

        assert get_cache_name() is None
        assert get_operation() is None


class TestContextLogger:
    """Tests for ContextLogger."""

    def test_prefixes_name(self) -> None:
        """Test that loggers live under the sfcache namespace."""
        assert get_logger("tests.module").name == "sfcache.tests.module"
        assert get_logger("sfcache.cache").name == "sfcache.cache"

    def test_keyword_fields_become_extra(self) -> None:
        """Test that keyword arguments are attached as structured fields."""
        handler, std_logger = capture("sfcache.test_fields")
        try:
            logger = get_logger("sfcache.test_fields")
            with log_context(cache="response"):
                logger.info("Cache hit", key="catalog_brands_all")

            record = handler.records[-1]
            assert record.extra == {"cache": "response", "key": "catalog_brands_all"}
            assert "key=catalog_brands_all" in record.getMessage()
        finally:
            std_logger.removeHandler(handler)

    def test_disabled_level_is_skipped(self) -> None:
        """Test that nothing is emitted below the logger level."""
        handler, std_logger = capture("sfcache.test_level")
        std_logger.setLevel(logging.WARNING)
        try:
            get_logger("sfcache.test_level").debug("hidden", key="k")
            assert handler.records == []
        finally:
            std_logger.removeHandler(handler)


class TestJSONFormatter:
    """Tests for JSON log output."""

    def test_formats_record_with_context(self) -> None:
        """Test the JSON Lines structure."""
        record = logging.LogRecord(
            "sfcache.test", logging.WARNING, __file__, 1, "Image too large", None, None
        )
        record.extra = {"url": "https://x/a.png"}

        with log_context(cache="image", operation="fetch"):
            data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["message"] == "Image too large"
        assert data["cache"] == "image"
        assert data["operation"] == "fetch"
        assert data["extra"] == {"url": "https://x/a.png"}


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_writes_json_file(self, temp_dir: Path) -> None:
        """Test that a log file receives JSON lines."""
        log_file = temp_dir / "logs" / "cache.jsonl"
        setup_logging("DEBUG", log_file=log_file, console_output=False)
        try:
            get_logger("sfcache.test_file").warning("Sweep failed", sweeper="image")
            for handler in logging.getLogger("sfcache").handlers:
                handler.flush()

            line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
            assert json.loads(line)["extra"] == {"sweeper": "image"}
        finally:
            root = logging.getLogger("sfcache")
            for handler in list(root.handlers):
                handler.close()
            root.handlers.clear()
