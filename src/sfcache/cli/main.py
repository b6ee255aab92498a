"""
CLI for inspecting and maintaining the durable image cache.

Commands:
    sfcache config - Show current configuration
    sfcache version - Print version
    sfcache images stats - Show image cache usage
    sfcache images cleanup - Remove expired and malformed records
    sfcache images clear - Remove every image cache record
    sfcache images fetch URL - Download an image into the cache
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from sfcache import __version__
from sfcache.cache.image_cache import ImageCache, create_image_cache
from sfcache.cache.storage import SQLiteStorage
from sfcache.config import Settings, clear_settings_cache, get_settings
from sfcache.logging import setup_logging

app = typer.Typer(
    name="sfcache",
    help="Storefront cache - inspect and maintain the durable image cache",
    no_args_is_help=True,
)
images_app = typer.Typer(help="Image cache maintenance", no_args_is_help=True)
app.add_typer(images_app, name="images")

console = Console()
error_console = Console(stderr=True)

DbOption = Annotated[
    Optional[Path],
    typer.Option("--db", help="Image store file (defaults to IMAGE_CACHE_DB_PATH)"),
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _open_cache(db: Path | None) -> tuple[ImageCache, SQLiteStorage]:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'sfcache config' to see the current values."
        )
        raise typer.Exit(1)

    setup_logging(settings.LOG_LEVEL)
    if db is not None:
        db.parent.mkdir(parents=True, exist_ok=True)
        storage = SQLiteStorage(db)
    else:
        settings.ensure_directories()
        storage = SQLiteStorage(settings.IMAGE_CACHE_DB_PATH)
    return create_image_cache(settings, storage=storage), storage


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Storefront Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check that:")
        error_console.print("  - sizes, TTLs and intervals are positive numbers")
        error_console.print(
            "  - IMAGE_CACHE_MAX_ITEM_BYTES <= IMAGE_CACHE_MAX_BYTES"
        )
        error_console.print("  - IMAGE_CACHE_KEY_PREFIX is not empty")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        table.add_row(key, str(value))

    console.print(table)
    console.print()


@images_app.command("stats")
def images_stats(db: DbOption = None) -> None:
    """Show image cache usage."""
    cache, storage = _open_cache(db)
    with storage:
        stats = cache.get_image_cache_stats()

    table = Table(title="Image Cache", show_header=True)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    for key, value in stats.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@images_app.command("cleanup")
def images_cleanup(db: DbOption = None) -> None:
    """Remove expired and malformed image records."""
    cache, storage = _open_cache(db)
    with storage:
        removed = cache.cleanup_expired_images()
    console.print(f"Removed [bold]{removed}[/bold] expired image(s)")


@images_app.command("clear")
def images_clear(
    db: DbOption = None,
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """Remove every image cache record. Other data in the store is kept."""
    if not yes:
        typer.confirm("Remove all cached images?", abort=True)
    cache, storage = _open_cache(db)
    with storage:
        removed = cache.clear_image_cache()
    console.print(f"Removed [bold]{removed}[/bold] image(s)")


@images_app.command("fetch")
def images_fetch(
    url: Annotated[str, typer.Argument(help="Image URL to download and cache")],
    db: DbOption = None,
) -> None:
    """Download an image into the cache."""
    cache, storage = _open_cache(db)

    async def _run() -> str:
        try:
            return await cache.fetch_and_cache_image(url)
        finally:
            await cache.close()

    with storage:
        result = asyncio.run(_run())
        stored = cache.get_cached_image(url) is not None

    if result == url:
        error_console.print(f"[yellow]Download failed or image too large:[/yellow] {url}")
        raise typer.Exit(1)
    if not stored:
        error_console.print(f"[yellow]Downloaded but not stored:[/yellow] {url}")
        raise typer.Exit(1)

    console.print(f"Cached [bold]{url}[/bold] ({len(result)} bytes encoded)")


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"storefront-cache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
