"""
Worker Pool

Owns the asyncio tasks for every worker loop and the shared shutdown event
they observe.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

WorkerFactory = Callable[[asyncio.Event], Awaitable[None]]


class WorkerPool:
    """
    Launches one task per worker and stops them together.

    All workers share one stop event. Stopping waits for in-flight
    operations up to a grace period, then cancels whatever is left.
    """

    def __init__(self, stop_event: Optional[asyncio.Event] = None):
        self.stop_event = stop_event or asyncio.Event()
        self._tasks: dict[str, asyncio.Task] = {}

    @property
    def count(self) -> int:
        """Number of tracked worker tasks."""
        return len(self._tasks)

    def running_worker_ids(self) -> list[str]:
        """Names of workers whose task has not finished."""
        return [name for name, task in self._tasks.items() if not task.done()]

    def spawn(self, name: str, factory: WorkerFactory) -> asyncio.Task:
        """
        Start a worker task.

        Args:
            name: Unique worker name, e.g. "Worker-1"
            factory: Coroutine function called with the shared stop event
        """
        if name in self._tasks and not self._tasks[name].done():
            raise ValueError(f"Worker {name} is already running")
        task = asyncio.create_task(factory(self.stop_event), name=name)
        task.add_done_callback(self._on_done)
        self._tasks[name] = task
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Worker %s exited with error: %s", task.get_name(), exc)

    async def stop_all(self, timeout_seconds: float = 30.0) -> int:
        """
        Signal every worker to stop and wait for them.

        Returns:
            Number of workers cancelled because they outlived the grace period
        """
        self.stop_event.set()
        tasks = list(self._tasks.values())
        if not tasks:
            return 0

        _, pending = await asyncio.wait(tasks, timeout=max(0.0, timeout_seconds))
        if pending:
            logger.warning(
                "Timeout waiting for workers to stop; cancelling %d in-flight worker(s)",
                len(pending),
            )
            for task in pending:
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("All workers stopped")
        return len(pending)
