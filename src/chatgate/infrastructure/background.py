"""Fire-and-forget task runner."""

import asyncio
from collections.abc import Coroutine
from typing import Any

from structlog.stdlib import BoundLogger


class BackgroundTasks:
    """Runs coroutines without the caller awaiting them.

    Supports:
    - Keeping a reference to every running task until it finishes
    - Logging tasks that end with an exception
    - Cancelling everything still running on shutdown
    """

    def __init__(self, logger: BoundLogger) -> None:
        """Initialize the runner.

        Args:
            logger: Logger used to report failed tasks.
        """
        self._logger = logger
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def running_count(self) -> int:
        """Return the number of tasks not yet finished."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule ``coro`` on the running loop and return immediately.

        Args:
            coro: The coroutine to run.
            name: Optional task name used in logs.

        Returns:
            The created task.
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self._logger.error(
                "Background task failed",
                task=task.get_name(),
                error=str(error),
                exc_info=error,
            )

    async def join(self) -> None:
        """Wait until every task spawned so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float | None = None) -> None:
        """Cancel running tasks and wait for them to unwind.

        Args:
            timeout: Seconds to wait for cancelled tasks; no limit if None.
        """
        tasks = list(self._tasks)
        if not tasks:
            return

        for task in tasks:
            task.cancel()

        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            self._logger.warning(
                "Background tasks did not stop in time", count=len(pending)
            )
