"""In-process FIFO queue with a single drain loop.

Tasks live only in memory: anything enqueued but not yet started is lost
when the process exits. At most one task runs at a time, so a long file
delays every job queued behind it.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueueTask:
    job_id: str
    file_path: Path


TaskHandler = Callable[[QueueTask], Awaitable[None]]


class InMemoryJobQueue:
    def __init__(self, handler: TaskHandler) -> None:
        self._handler = handler
        self._tasks: deque[QueueTask] = deque()
        self._drain_task: asyncio.Task | None = None
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    @property
    def draining(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def size(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        """Begin draining; must be called from the running event loop."""
        if self._started:
            return
        self._started = True
        logger.info("Import queue started")
        self._ensure_draining()

    async def stop(self) -> None:
        """Stop the drain loop, abandoning the running and pending tasks."""
        self._started = False
        if self.draining:
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
        if self._tasks:
            logger.warning(f"Import queue stopped with {len(self._tasks)} task(s) pending")
        logger.info("Import queue stopped")

    def enqueue(self, task: QueueTask) -> None:
        """Append a task; never blocks."""
        self._tasks.append(task)
        logger.info(f"Enqueued job {task.job_id} (queue depth {len(self._tasks)})")
        if self._started:
            self._ensure_draining()

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is running."""
        while self.draining:
            await asyncio.shield(self._drain_task)

    def _ensure_draining(self) -> None:
        if self.draining or not self._tasks:
            return
        self._drain_task = asyncio.get_running_loop().create_task(self._drain())

    async def _drain(self) -> None:
        while self._started and self._tasks:
            task = self._tasks.popleft()
            try:
                await self._handler(task)
            except Exception as e:
                # The importer terminalizes its own job; this only keeps the loop alive.
                logger.error(f"Queue worker failed on job {task.job_id}: {e}", exc_info=True)
