"""
Background snapshot jobs.

Request handlers enqueue work and return immediately; worker tasks started
by the app lifespan drain the queue. A failing job is logged and dropped.
It never takes a worker down.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)

JobFactory = Callable[[], Awaitable[Any]]


@dataclass
class SnapshotJob:
    name: str
    run: JobFactory


class SnapshotJobQueue:
    """asyncio.Queue drained by a fixed number of worker tasks."""

    def __init__(self, workers: int = 1):
        self.worker_count = max(1, workers)
        self._queue: asyncio.Queue[SnapshotJob] = asyncio.Queue()
        self._workers: list[asyncio.Task] = []
        self.completed = 0
        self.failed = 0

    @property
    def depth(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def enqueue(self, name: str, run: JobFactory) -> None:
        self._queue.put_nowait(SnapshotJob(name=name, run=run))
        logger.debug(f"Queued job {name} (depth {self.depth})")

    async def start(self) -> None:
        if self._workers:
            return
        for index in range(self.worker_count):
            self._workers.append(asyncio.create_task(self._worker(index), name=f"snapshot-worker-{index}"))
        logger.info(f"Started {self.worker_count} snapshot worker(s)")

    async def stop(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        logger.info("Stopped snapshot workers")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            job = await self._queue.get()
            try:
                await job.run()
                self.completed += 1
                logger.info(f"Job {job.name} finished")
            except asyncio.CancelledError:
                raise
            except Exception:
                self.failed += 1
                logger.exception(f"Job {job.name} failed")
            finally:
                self._queue.task_done()
