"""
Periodic expiry sweeper.

Runs a cache's cleanup function on a fixed interval as a background asyncio
task. Nothing is started at import time: owners call start() from inside a
running event loop and stop() on shutdown.

Lazy expiry on read already keeps results correct; the sweeper only
reclaims memory held by stale keys nobody reads again.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from sfcache.logging import get_logger, log_context

logger = get_logger(__name__)


class PeriodicSweeper:
    """Background loop calling ``sweep()`` every ``interval_s`` seconds."""

    def __init__(self, name: str, interval_s: float, sweep: Callable[[], int]) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be > 0")
        self.name = name
        self.interval_s = interval_s
        self._sweep = sweep
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the sweep loop on the running event loop.

        Raises:
            RuntimeError: If already running or no event loop is running.
        """
        if self.running:
            raise RuntimeError(f"Sweeper '{self.name}' is already running")
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._loop(), name=f"sfcache-sweep-{self.name}")
        logger.debug("Sweeper started", sweeper=self.name, interval_s=self.interval_s)

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish. Safe to call twice."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        logger.debug("Sweeper stopped", sweeper=self.name)

    async def _loop(self) -> None:
        with log_context(cache=self.name, operation="sweep"):
            while True:
                await asyncio.sleep(self.interval_s)
                try:
                    removed = self._sweep()
                except Exception:  # noqa: BLE001
                    logger.exception("Sweep failed", sweeper=self.name)
                    continue
                if removed:
                    logger.debug("Sweep removed expired entries", removed=removed)
