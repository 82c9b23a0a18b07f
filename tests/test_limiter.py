"""Tests for DispatchLimiter."""

import asyncio
import time

import pytest

from ccpretty.dispatch.limiter import DispatchLimiter


def recorder(calls, value, delay=0.0):
    async def task():
        if delay:
            await asyncio.sleep(delay)
        calls.append((value, time.monotonic()))
        return value

    return task


class TestOrdering:
    """Tasks run one at a time in submission order."""

    @pytest.mark.asyncio
    async def test_fifo_order(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        calls = []

        futures = [limiter.submit(recorder(calls, n, delay=0.005 * (3 - n))) for n in range(3)]
        await limiter.wait_for_completion()

        assert [value for value, _ in calls] == [0, 1, 2]
        assert [f.result() for f in futures] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_execute_returns_result(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        assert await limiter.execute(recorder([], "ok")) == "ok"

    @pytest.mark.asyncio
    async def test_never_runs_tasks_concurrently(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        in_flight = 0
        peak = 0

        async def task():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.005)
            in_flight -= 1

        for _ in range(4):
            limiter.submit(task)
        await limiter.wait_for_completion()

        assert peak == 1


class TestSpacing:
    """Minimum interval between call starts."""

    @pytest.mark.asyncio
    async def test_calls_are_spaced(self):
        limiter = DispatchLimiter(calls_per_second=50)
        calls = []

        for n in range(3):
            limiter.submit(recorder(calls, n))
        await limiter.wait_for_completion()

        starts = [at for _, at in calls]
        gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
        assert all(gap >= 0.015 for gap in gaps)

    def test_min_interval(self):
        assert DispatchLimiter(calls_per_second=4).min_interval == 0.25

    def test_rejects_non_positive_rate(self):
        with pytest.raises(ValueError):
            DispatchLimiter(calls_per_second=0)


class TestFailures:
    """A failing task never stops the queue."""

    @pytest.mark.asyncio
    async def test_failure_delivered_through_future(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        calls = []

        async def failing():
            raise RuntimeError("boom")

        failed = limiter.submit(failing)
        succeeded = limiter.submit(recorder(calls, "after"))
        await limiter.wait_for_completion()

        with pytest.raises(RuntimeError, match="boom"):
            failed.result()
        assert succeeded.result() == "after"

    @pytest.mark.asyncio
    async def test_cancelled_task_does_not_stall_queue(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        calls = []

        async def cancelled():
            raise asyncio.CancelledError()

        first = limiter.submit(cancelled)
        second = limiter.submit(recorder(calls, "ok"))
        await asyncio.wait_for(limiter.wait_for_completion(), 1)

        assert first.cancelled()
        assert second.result() == "ok"
        assert limiter.is_idle

    @pytest.mark.asyncio
    async def test_worker_cancellation_cancels_queued_futures(self):
        limiter = DispatchLimiter(calls_per_second=0.1)

        first = limiter.submit(recorder([], "first"))
        queued = limiter.submit(recorder([], "never"))
        await first
        # The worker is now sleeping out the interval before the next call
        limiter._worker.cancel()
        await asyncio.wait_for(limiter.wait_for_completion(), 1)

        assert queued.cancelled()
        assert limiter.pending_count == 0


class TestDraining:
    """wait_for_completion and idle tracking."""

    @pytest.mark.asyncio
    async def test_idle_when_empty(self):
        limiter = DispatchLimiter()
        assert limiter.is_idle
        assert limiter.pending_count == 0
        await asyncio.wait_for(limiter.wait_for_completion(), 0.1)

    @pytest.mark.asyncio
    async def test_pending_count_and_drain(self):
        limiter = DispatchLimiter(calls_per_second=100)
        calls = []

        for n in range(3):
            limiter.submit(recorder(calls, n))
        assert limiter.pending_count == 3
        assert not limiter.is_idle

        await limiter.wait_for_completion()

        assert limiter.is_idle
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_submit_after_drain_restarts_worker(self):
        limiter = DispatchLimiter(calls_per_second=1000)
        calls = []

        await limiter.execute(recorder(calls, 1))
        await limiter.execute(recorder(calls, 2))

        assert [value for value, _ in calls] == [1, 2]
