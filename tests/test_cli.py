"""
Tests for the maintenance CLI.
"""

from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from sfcache import __version__
from sfcache.cache.image_cache import create_image_cache
from sfcache.cache.storage import SQLiteStorage
from sfcache.cli.main import app
from sfcache.config import Settings

runner = CliRunner()


def seed(settings: Settings, db_path: Path, count: int, ttl_s: float = 900) -> None:
    """Write ``count`` small images into the store at db_path."""
    with SQLiteStorage(db_path) as storage:
        cache = create_image_cache(settings, storage=storage)
        for i in range(count):
            cache.set_cached_image(f"https://x/{i}.png", "data:image/png;base64,AAAA", ttl_s=ttl_s)
        storage.set_item("session_token", "keep-me")


class TestCli:
    """Tests for sfcache commands."""

    def test_version(self) -> None:
        """Test the version command."""
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config(self, mock_settings: Settings) -> None:
        """Test that config renders the settings table."""
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "IMAGE_CACHE_KEY_PREFIX" in result.output

    def test_images_stats(self, mock_settings: Settings, temp_dir: Path) -> None:
        """Test the stats command against a seeded store."""
        db_path = temp_dir / "cli.db"
        seed(mock_settings, db_path, 3)

        result = runner.invoke(app, ["images", "stats", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "total_images" in result.output
        assert "3" in result.output

    def test_images_cleanup(self, mock_settings: Settings, temp_dir: Path) -> None:
        """Test that cleanup removes only expired images."""
        db_path = temp_dir / "cli.db"
        seed(mock_settings, db_path, 2, ttl_s=-1)

        result = runner.invoke(app, ["images", "cleanup", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Removed 2" in result.output
        with SQLiteStorage(db_path) as storage:
            assert storage.keys() == ["session_token"]

    def test_images_clear_keeps_foreign_keys(
        self, mock_settings: Settings, temp_dir: Path
    ) -> None:
        """Test that clear leaves other data in the store untouched."""
        db_path = temp_dir / "cli.db"
        seed(mock_settings, db_path, 4)

        result = runner.invoke(app, ["images", "clear", "--yes", "--db", str(db_path)])

        assert result.exit_code == 0
        assert "Removed 4" in result.output
        with SQLiteStorage(db_path) as storage:
            assert storage.get_item("session_token") == "keep-me"

    def test_images_clear_aborts_without_confirmation(
        self, mock_settings: Settings, temp_dir: Path
    ) -> None:
        """Test that declining the prompt leaves the cache intact."""
        db_path = temp_dir / "cli.db"
        seed(mock_settings, db_path, 1)

        result = runner.invoke(app, ["images", "clear", "--db", str(db_path)], input="n\n")

        assert result.exit_code != 0
        with SQLiteStorage(db_path) as storage:
            assert len(storage.keys()) == 2
