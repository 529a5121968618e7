"""Periodic per-index refresh scheduling.

Each index gets at most one asyncio task that sleeps for the configured
interval and then calls the refresh callback. Starting a schedule for an index
that already has one replaces it.
"""

import asyncio
import threading
from collections.abc import Awaitable, Callable

import structlog

RefreshCallback = Callable[[str], Awaitable[None]]


class AutoRefreshScheduler:
    """Owns the background refresh tasks for a set of indices."""

    def __init__(
        self,
        refresh: RefreshCallback,
        timeout: float = 30.0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._refresh = refresh
        self._timeout = timeout
        self._logger = logger or structlog.get_logger(__name__)
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._lock = threading.Lock()

    def start(self, index_id: str, interval: float) -> None:
        """Start refreshing index_id every interval seconds.

        Must be called from a running event loop. Any existing schedule for the
        index is cancelled first.
        """
        if interval <= 0:
            raise ValueError("refresh interval must be positive")
        loop = asyncio.get_running_loop()
        with self._lock:
            previous = self._tasks.pop(index_id, None)
            if previous is not None:
                previous.cancel()
            task = loop.create_task(self._run(index_id, interval), name=f"auto-refresh-{index_id}")
            self._tasks[index_id] = task
        task.add_done_callback(lambda t: self._forget(index_id, t))
        self._logger.info("auto_refresh_started", index_id=index_id, interval_seconds=interval)

    def stop(self, index_id: str) -> None:
        with self._lock:
            task = self._tasks.pop(index_id, None)
        if task is None:
            return
        task.cancel()
        self._logger.info("auto_refresh_stopped", index_id=index_id)

    def is_active(self, index_id: str) -> bool:
        with self._lock:
            return index_id in self._tasks

    def active_index_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._tasks)

    async def shutdown(self) -> None:
        """Cancel every schedule and wait for the tasks to finish."""
        with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._logger.debug("auto_refresh_shutdown", cancelled=len(tasks))

    def _forget(self, index_id: str, task: asyncio.Task[None]) -> None:
        with self._lock:
            if self._tasks.get(index_id) is task:
                del self._tasks[index_id]

    async def _run(self, index_id: str, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                async with asyncio.timeout(self._timeout):
                    await self._refresh(index_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._logger.warning("auto_refresh_failed", index_id=index_id, error=str(e))
