# ============================================================================
# tests/unit/test_worker_pool.py
# ============================================================================
"""
Tests for the bounded async worker pool
"""

import asyncio

import pytest

from medical_reconciliation.extractors.worker_pool import WorkerPool


class TestWorkerPool:
    """Test WorkerPool.map"""

    @pytest.mark.asyncio
    async def test_results_in_input_order(self):
        async def slow_square(n):
            # later items finish first
            await asyncio.sleep(0.01 * (5 - n))
            return n * n

        results = await WorkerPool(5).map([1, 2, 3, 4], slow_square)

        assert results == [1, 4, 9, 16]

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        in_flight = 0
        peak = 0

        async def track(n):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return n

        results = await WorkerPool(2).map(list(range(7)), track)

        assert results == list(range(7))
        assert peak == 2

    @pytest.mark.asyncio
    async def test_return_exceptions(self):
        async def maybe_fail(n):
            if n == 2:
                raise RuntimeError("boom")
            return n

        results = await WorkerPool(2).map([1, 2, 3], maybe_fail, return_exceptions=True)

        assert results[0] == 1
        assert isinstance(results[1], RuntimeError)
        assert results[2] == 3

    @pytest.mark.asyncio
    async def test_failure_cancels_remaining(self):
        cancelled = []

        async def work(n):
            if n == 0:
                raise RuntimeError("boom")
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(n)
                raise
            return n

        with pytest.raises(RuntimeError):
            await WorkerPool(3).map([0, 1, 2], work)

        assert sorted(cancelled) == [1, 2]

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        cancelled = []
        started = asyncio.Event()

        async def work(n):
            started.set()
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(n)
                raise
            return n

        task = asyncio.ensure_future(WorkerPool(2).map([1, 2, 3], work))
        await started.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert sorted(cancelled) == [1, 2]

    @pytest.mark.asyncio
    async def test_empty_input(self):
        async def never(n):
            raise AssertionError("should not run")

        assert await WorkerPool(2).map([], never) == []

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            WorkerPool(0)
