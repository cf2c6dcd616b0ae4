"""
Tests for the background snapshot job queue.
"""

import asyncio

import pytest

from articlevault.tasks import SnapshotJobQueue


class TestSnapshotJobQueue:

    @pytest.mark.asyncio
    async def test_runs_jobs_in_order(self):
        queue = SnapshotJobQueue(workers=1)
        seen = []

        async def job(n):
            seen.append(n)

        for n in range(3):
            queue.enqueue(f"job-{n}", lambda n=n: job(n))
        assert queue.depth == 3

        await queue.start()
        await asyncio.wait_for(queue.join(), timeout=2)
        await queue.stop()

        assert seen == [0, 1, 2]
        assert queue.completed == 3
        assert queue.depth == 0

    @pytest.mark.asyncio
    async def test_failing_job_does_not_stop_worker(self):
        queue = SnapshotJobQueue(workers=1)
        seen = []

        async def boom():
            raise RuntimeError("render failed")

        async def fine():
            seen.append("ok")

        await queue.start()
        queue.enqueue("boom", boom)
        queue.enqueue("fine", fine)
        await asyncio.wait_for(queue.join(), timeout=2)
        await queue.stop()

        assert queue.failed == 1
        assert queue.completed == 1
        assert seen == ["ok"]

    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_clears_workers(self):
        queue = SnapshotJobQueue(workers=2)
        await queue.start()
        await queue.start()
        assert queue.running
        assert len(queue._workers) == 2

        await queue.stop()
        assert not queue.running
