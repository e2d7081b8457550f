"""
Background task set for fire-and-forget work (access logs).

Tasks are held by strong reference until done so the event loop cannot
garbage-collect them mid-flight. Failures are logged, never raised.
"""

import asyncio
from typing import Coroutine

import structlog

logger = structlog.get_logger()


class BackgroundTasks:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._tasks)

    def submit(self, coro: Coroutine, *, name: str | None = None) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background_task_failed", task=task.get_name(), error=repr(exc))

    async def drain(self) -> None:
        """Wait for everything submitted so far (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
