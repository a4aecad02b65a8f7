"""Supervised fire-and-forget background tasks.

Work that must never block or fail a request (visit counting) is spawned
through a TaskSupervisor. The supervisor keeps every task referenced until it
finishes, logs and counts any exception the task raised, and drains what is
still pending when the application shuts down.
"""

__all__ = ["TaskSupervisor"]

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Optional

from prometheus_client import Counter

BACKGROUND_TASKS_TOTAL = Counter(
    "shortlink_background_tasks_total",
    "Fire-and-forget tasks spawned",
)
BACKGROUND_TASK_FAILURES_TOTAL = Counter(
    "shortlink_background_task_failures_total",
    "Fire-and-forget tasks that raised an exception",
)


class TaskSupervisor:
    """Spawn detached coroutines whose failures are logged, never raised.

    Example:
        >>> supervisor = TaskSupervisor(logger)
        >>> supervisor.spawn(store.increment_visits("abc123"), name="visit:abc123")
        >>> await supervisor.drain(timeout=5)
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("shortlink.tasks")
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: Optional[str] = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        BACKGROUND_TASKS_TOTAL.inc()
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            BACKGROUND_TASK_FAILURES_TOTAL.inc()
            self._logger.error(
                f"Background task {task.get_name()} failed: {exc!r}",
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def wait_idle(self) -> None:
        """Wait until every task spawned so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def drain(self, timeout: float) -> int:
        """Give pending tasks ``timeout`` seconds to finish, then cancel the rest.

        Returns:
            int: Number of tasks that had to be cancelled.
        """
        pending = list(self._tasks)
        if not pending:
            return 0
        _, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            self._logger.warning(f"Cancelled {len(still_pending)} background task(s) on shutdown")
        return len(still_pending)

    def __len__(self) -> int:
        return len(self._tasks)
