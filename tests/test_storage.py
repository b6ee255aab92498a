"""
Tests for key/value storage backends.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from sfcache.cache.storage import MemoryStorage, SQLiteStorage
from sfcache.exceptions import StorageError, StorageQuotaExceededError


class TestMemoryStorage:
    """Tests for the dict-backed store."""

    def test_basic_operations(self) -> None:
        """Test set, get, keys and remove."""
        store = MemoryStorage()
        store.set_item("a", "1")
        store.set_item("b", "2")

        assert store.get_item("a") == "1"
        assert sorted(store.keys()) == ["a", "b"]

        store.remove_item("a")
        assert store.get_item("a") is None
        assert len(store) == 1

    def test_remove_missing_is_noop(self) -> None:
        """Test that removing an absent key does not raise."""
        MemoryStorage().remove_item("missing")

    def test_quota_rejects_write_and_keeps_state(self) -> None:
        """Test that a write over quota raises and changes nothing."""
        store = MemoryStorage(quota_bytes=10)
        store.set_item("a", "x" * 6)

        with pytest.raises(StorageQuotaExceededError) as exc_info:
            store.set_item("b", "y" * 5)

        assert isinstance(exc_info.value, StorageError)
        assert exc_info.value.context["quota_bytes"] == 10
        assert store.keys() == ["a"]

    def test_quota_ignores_value_being_replaced(self) -> None:
        """Test that overwriting a key only counts the new value."""
        store = MemoryStorage(quota_bytes=10)
        store.set_item("a", "x" * 8)
        store.set_item("a", "y" * 10)

        assert store.get_item("a") == "y" * 10


class TestSQLiteStorage:
    """Tests for the durable store."""

    def test_creates_parent_directory(self, temp_dir: Path) -> None:
        """Test that the database directory is created on first use."""
        db_path = temp_dir / "nested" / "dir" / "kv.db"

        with SQLiteStorage(db_path) as store:
            store.set_item("a", "1")

        assert db_path.exists()

    def test_basic_operations(self, temp_dir: Path) -> None:
        """Test set, replace, get, keys and remove."""
        with SQLiteStorage(temp_dir / "kv.db") as store:
            store.set_item("a", "1")
            store.set_item("a", "2")
            store.set_item("b", "3")

            assert store.get_item("a") == "2"
            assert store.get_item("zzz") is None
            assert sorted(store.keys()) == ["a", "b"]

            store.remove_item("a")
            store.remove_item("a")
            assert store.keys() == ["b"]

    def test_persists_across_connections(self, temp_dir: Path) -> None:
        """Test that committed writes survive closing the store."""
        db_path = temp_dir / "kv.db"
        with SQLiteStorage(db_path) as store:
            store.set_item("img_cache_abc", '{"v": 1}')

        with SQLiteStorage(db_path) as reopened:
            assert reopened.get_item("img_cache_abc") == '{"v": 1}'

    def test_unopenable_path_raises_storage_error(self, temp_dir: Path) -> None:
        """Test that a bad location surfaces as StorageError."""
        blocker = temp_dir / "not_a_dir"
        blocker.write_text("file")

        store = SQLiteStorage(blocker / "kv.db")
        with pytest.raises(StorageError):
            store.keys()

    def test_close_is_idempotent(self, temp_dir: Path) -> None:
        """Test that close() can be called repeatedly."""
        store = SQLiteStorage(temp_dir / "kv.db")
        store.set_item("a", "1")
        store.close()
        store.close()
