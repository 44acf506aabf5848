"""Single-worker FIFO queue for ref-update handling.

All live and scanned ref updates go through one worker task, so at most one
handler touches the database at a time. Submission never blocks.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Protocol

logger = logging.getLogger(__name__)

_WORKER_NAME = "(Repository-Usage)"


class QueueTask(Protocol):
    async def run(self) -> None: ...


class ScanningQueue:
    """Runs submitted tasks one at a time in submission order."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[QueueTask] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._accepting = False

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    @property
    def accepting(self) -> bool:
        return self._accepting

    def start(self) -> None:
        """Start the worker on the running event loop."""
        if self.is_running:
            return
        self._accepting = True
        self._worker = asyncio.create_task(self._run(), name=_WORKER_NAME)
        logger.info("Started %s worker", _WORKER_NAME)

    def submit(self, task: QueueTask) -> bool:
        """Enqueue a task; returns False once the queue has been stopped."""
        if not self._accepting:
            logger.warning("Queue is not accepting work; dropping %s", task)
            return False
        self._queue.put_nowait(task)
        logger.debug("Queued %s (%d pending)", task, self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every submitted task has finished."""
        await self._queue.join()

    async def stop(self) -> None:
        """Refuse new work, finish what is already queued, stop the worker."""
        self._accepting = False
        if self._worker is None:
            return
        if not self._worker.done():
            await self._queue.join()
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
        self._worker = None
        logger.info("Stopped %s worker", _WORKER_NAME)

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await task.run()
            except Exception:
                logger.exception("Task %s failed", task)
            finally:
                self._queue.task_done()
