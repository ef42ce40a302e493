"""
Fixed-size worker pool draining the inbound event queue.
"""

import asyncio
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger()

Handler = Callable[[Any], Awaitable[Any]]


class WorkerPool:
    """Runs ``handler`` on queued events, at most ``size`` at a time.

    A failing event is logged and dropped; it never takes down the pool.
    """

    def __init__(self, queue: asyncio.Queue, handler: Handler, size: int = 3):
        if size < 1:
            raise ValueError("Worker pool needs at least one slot")
        self.queue = queue
        self.handler = handler
        self.size = size
        self._slots = asyncio.Semaphore(size)
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def _process(self, event: Any) -> None:
        try:
            await self.handler(event)
        except Exception:
            logger.exception("Error processing event")
        finally:
            self._slots.release()
            self.queue.task_done()

    async def run(self) -> None:
        """Dispatch events forever."""
        logger.info("Worker pool started", size=self.size)
        while True:
            event = await self.queue.get()
            await self._slots.acquire()

            task = asyncio.create_task(self._process(event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        """Cancel in-flight work."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
