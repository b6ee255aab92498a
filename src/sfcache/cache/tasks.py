"""
Fire-and-forget background tasks.

The synchronous image accessor must never block on the network, so it hands
the download to this runner and returns its fallback value immediately.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine

from sfcache.logging import get_logger

logger = get_logger(__name__)

CoroutineFactory = Callable[[], Coroutine[Any, Any, Any]]


class BackgroundTasks:
    """Schedules coroutines on the running loop and keeps them referenced.

    Failures are logged, never raised to the submitter.
    """

    def __init__(self) -> None:
        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def submit(self, factory: CoroutineFactory, name: str | None = None) -> bool:
        """Schedule ``factory()`` on the running event loop.

        The coroutine is only created once a loop is known to be running, so
        a skipped submission leaves no un-awaited coroutine behind.

        Returns:
            True if the task was scheduled, False if no loop is running.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, background task skipped", task=name)
            return False

        task = loop.create_task(factory(), name=name)
        self._pending.add(task)
        task.add_done_callback(self._on_done)
        return True

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Background task failed",
                task=task.get_name(),
                error=f"{type(error).__name__}: {error}",
            )

    async def drain(self) -> None:
        """Wait for every pending task, including ones scheduled meanwhile."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel pending tasks and wait for them to settle."""
        tasks = list(self._pending)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
