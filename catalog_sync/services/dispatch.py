"""
Fire-and-forget Work Queue
==========================

Detached asyncio execution for webhook-triggered processing. Callers
submit a coroutine and return immediately; failures are routed to the
queue's error channel instead of being lost with the task.
"""

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

ErrorCallback = Callable[[BaseException, dict[str, Any]], None]


class WorkQueue:
    """
    Tracks detached tasks until they finish.

    Attributes:
        on_error: Optional callback receiving (exception, context)
        failures: Number of tasks that ended with an exception

    Example:
        queue = WorkQueue()
        queue.submit(processor.process(product, "webhook_update"), {"topic": topic})
        ...
        await queue.drain()
    """

    def __init__(self, on_error: ErrorCallback | None = None) -> None:
        self.on_error = on_error
        self.failures = 0
        self._tasks: set[asyncio.Task] = set()
        self._log = logger.bind(component="WorkQueue")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        coro: Coroutine[Any, Any, Any],
        context: dict[str, Any] | None = None,
    ) -> asyncio.Task:
        """Schedule ``coro`` on the running loop and return its task."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        ctx = dict(context or {})
        task.add_done_callback(lambda t: self._finished(t, ctx))
        return task

    def _finished(self, task: asyncio.Task, context: dict[str, Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._log.warning("work_cancelled", **context)
            return
        exc = task.exception()
        if exc is None:
            return
        self.failures += 1
        self._log.error(
            "work_failed",
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
        if self.on_error is not None:
            try:
                self.on_error(exc, context)
            except Exception as callback_error:
                self._log.error("work_error_callback_failed", error=str(callback_error))

    async def drain(self) -> None:
        """Wait for every outstanding task; task errors are already reported."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
