"""Rate-limited FIFO dispatch of async tasks.

Used by sinks that call rate-limited remote APIs. Tasks run one at a time,
strictly in submission order, with at least ``1 / calls_per_second``
seconds between the starts of consecutive calls.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
TaskFactory = Callable[[], Awaitable[Any]]


class DispatchLimiter:
    """Serial task queue enforcing a minimum interval between calls.

    Failures of one task, cancellation included, are delivered through its
    future and never stop the queue. If the worker itself is cancelled, every
    task still queued has its future cancelled and the limiter goes idle.

    Example:
        limiter = DispatchLimiter(calls_per_second=1)
        response = await limiter.execute(lambda: client.post(payload))
        await limiter.wait_for_completion()
    """

    def __init__(
        self,
        calls_per_second: float = 1.0,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            calls_per_second: Maximum call rate.
            clock: Seconds clock, monotonic by default.
        """
        if calls_per_second <= 0:
            raise ValueError(f"calls_per_second must be positive, got {calls_per_second}")

        self.min_interval = 1.0 / calls_per_second
        self._clock = clock or time.monotonic
        self._queue: deque[tuple[TaskFactory, asyncio.Future]] = deque()
        self._worker: asyncio.Task | None = None
        self._processing = False
        self._last_call_time: float | None = None
        self._idle = asyncio.Event()
        self._idle.set()

    def submit(self, task: TaskFactory) -> asyncio.Future:
        """Queue a task and return a future resolved with its result.

        Args:
            task: Zero-argument callable returning an awaitable.

        Returns:
            Future completed when the task has run.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        self._queue.append((task, future))
        self._idle.clear()

        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._drain())
        return future

    async def execute(self, task: Callable[[], Awaitable[T]]) -> T:
        """Queue a task and wait for its result."""
        return await self.submit(task)

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    @property
    def is_idle(self) -> bool:
        return not self._queue and not self._processing

    async def wait_for_completion(self) -> None:
        """Wait until the queue is empty and no task is in flight."""
        while not self.is_idle:
            await self._idle.wait()

    async def _drain(self) -> None:
        self._processing = True
        try:
            while self._queue:
                if self._last_call_time is not None:
                    wait = self.min_interval - (self._clock() - self._last_call_time)
                    if wait > 0:
                        await asyncio.sleep(wait)

                task, future = self._queue.popleft()
                self._last_call_time = self._clock()
                try:
                    result = await task()
                except asyncio.CancelledError:
                    logger.debug("Dispatched task was cancelled")
                    future.cancel()
                except Exception as e:
                    logger.debug(
                        "Dispatched task failed",
                        extra={"error": str(e), "error_type": type(e).__name__},
                    )
                    if not future.done():
                        future.set_exception(e)
                else:
                    if not future.done():
                        future.set_result(result)
        finally:
            # Only non-empty when the worker itself was cancelled
            while self._queue:
                _, future = self._queue.popleft()
                future.cancel()
            self._processing = False
            self._idle.set()
