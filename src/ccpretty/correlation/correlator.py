"""Buffered correlation of stream events into groups.

The EventCorrelator owns the event buffer, the pending tool-correlation map
and the active-tool pointer. Ingestion and the periodic tick both run on the
asyncio event loop that called ``start()``, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections import deque
from collections.abc import Callable

from ccpretty.events.models import EventType, StreamEvent

from .models import MessageGroup, QueuedEvent, ToolCorrelation

logger = logging.getLogger(__name__)

GroupHandler = Callable[[list[MessageGroup]], None]

DEFAULT_SAMPLE_INTERVAL_MS = 500
DEFAULT_TOOL_TIMEOUT_MS = 30_000
DEFAULT_MAX_QUEUE_SIZE = 1000


def _monotonic_ms() -> float:
    return time.monotonic() * 1000


class EventCorrelator:
    """
    Pairs tool invocations with their results and batches events into groups.

    Events wait in the buffer for one sample interval so that a tool result
    arriving shortly after its invocation can be paired in the same pass.
    System events and error results skip the wait.

    Only one tool runs at a time upstream. A new invocation while another is
    still open abandons the older one, which is emitted as an interruption
    in the same batch, ahead of anything the new invocation produces.

    Example:
        correlator = EventCorrelator(on_groups=handle_batch)
        correlator.start()
        correlator.enqueue(event)
        ...
        correlator.stop()
    """

    def __init__(
        self,
        on_groups: GroupHandler | None = None,
        *,
        sample_interval_ms: float = DEFAULT_SAMPLE_INTERVAL_MS,
        tool_timeout_ms: float = DEFAULT_TOOL_TIMEOUT_MS,
        max_queue_size: int = DEFAULT_MAX_QUEUE_SIZE,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """
        Initialize the correlator.

        Args:
            on_groups: Called once per non-empty batch of groups.
            sample_interval_ms: Tick period and minimum event age before routing.
            tool_timeout_ms: Age after which an unanswered invocation is orphaned.
            max_queue_size: Buffer capacity; the oldest entries are evicted beyond it.
            clock: Millisecond clock, monotonic by default.
        """
        if max_queue_size <= 0:
            raise ValueError(f"max_queue_size must be positive, got {max_queue_size}")

        self.on_groups = on_groups
        self.sample_interval_ms = sample_interval_ms
        self.tool_timeout_ms = tool_timeout_ms
        self.max_queue_size = max_queue_size
        self._clock = clock or _monotonic_ms

        self._queue: deque[QueuedEvent] = deque(maxlen=max_queue_size)
        self._pending: dict[str, ToolCorrelation] = {}
        self._active_tool_id: str | None = None
        self._ids = itertools.count(1)
        self._task: asyncio.Task | None = None
        self.dropped_count = 0

    # ============================================================================
    # Lifecycle
    # ============================================================================

    def start(self) -> None:
        """Start the periodic tick on the running event loop.

        Raises:
            RuntimeError: If the tick is already running or no loop is running.
        """
        if self.is_running():
            raise RuntimeError("EventCorrelator is already running")

        self._task = asyncio.get_running_loop().create_task(self._tick_loop())
        logger.debug(
            "EventCorrelator started",
            extra={"sample_interval_ms": self.sample_interval_ms},
        )

    def stop(self) -> list[MessageGroup]:
        """Stop ticking and flush everything still held.

        Runs one forced pass over the buffer, then orphans every pending
        correlation. Both land in a single final batch.

        Returns:
            The final batch (also passed to ``on_groups`` when non-empty).
        """
        if self._task is not None:
            self._task.cancel()
            self._task = None

        groups = self._collect(force=True)

        now = self._clock()
        for correlation in list(self._pending.values()):
            correlation.orphan()
            groups.append(
                MessageGroup.single(
                    correlation.invocation, start_time=correlation.start_time, end_time=now
                )
            )
            logger.info(
                "Flushing unresolved tool at shutdown",
                extra={"tool_id": correlation.tool_id, "tool_name": correlation.tool_name},
            )
        self._pending.clear()
        self._active_tool_id = None

        self._emit(groups)
        return groups

    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _tick_loop(self) -> None:
        interval = self.sample_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                self.process_queue()
            except Exception as e:
                logger.error(
                    "Correlator tick failed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )

    # ============================================================================
    # Ingestion and processing
    # ============================================================================

    def enqueue(self, event: StreamEvent) -> QueuedEvent:
        """Buffer an event, evicting the oldest entry when full."""
        queued = QueuedEvent(id=f"evt_{next(self._ids)}", timestamp=self._clock(), event=event)

        if len(self._queue) == self.max_queue_size:
            self.dropped_count += 1
            logger.warning(
                "Event buffer full, dropping oldest event",
                extra={"capacity": self.max_queue_size, "dropped_total": self.dropped_count},
            )
        self._queue.append(queued)
        return queued

    def process_queue(self, force: bool = False) -> list[MessageGroup]:
        """Route ready events, sweep timed-out tools, and emit the batch.

        Args:
            force: Route every unconsumed event regardless of age.

        Returns:
            Groups produced by this pass, in emission order.
        """
        groups = self._collect(force=force)
        self._emit(groups)
        return groups

    def _collect(self, force: bool) -> list[MessageGroup]:
        now = self._clock()
        groups: list[MessageGroup] = []

        ready = [queued for queued in self._queue if self._is_ready(queued, now, force)]
        for queued in ready:
            groups.extend(self._route(queued))
            queued.consumed = True

        groups.extend(self._sweep_stale_tools(now))

        if ready:
            self._queue = deque(
                (queued for queued in self._queue if not queued.consumed),
                maxlen=self.max_queue_size,
            )
        return groups

    def _is_ready(self, queued: QueuedEvent, now: float, force: bool) -> bool:
        if queued.consumed:
            return False
        return (
            force
            or now - queued.timestamp > self.sample_interval_ms
            or self._is_immediate(queued.event)
        )

    @staticmethod
    def _is_immediate(event: StreamEvent) -> bool:
        # Session boundaries surface without the sampling delay
        return event.type is EventType.SYSTEM or (
            event.type is EventType.RESULT and event.is_error
        )

    def _route(self, queued: QueuedEvent) -> list[MessageGroup]:
        if queued.event.tool_invocation is not None:
            return self._handle_invocation(queued)
        if queued.event.tool_outcome is not None:
            return self._handle_outcome(queued)
        return [MessageGroup.single(queued)]

    def _handle_invocation(self, queued: QueuedEvent) -> list[MessageGroup]:
        invocation = queued.event.tool_invocation
        if invocation is None or not invocation.id:
            return [MessageGroup.single(queued)]

        if invocation.id in self._pending:
            logger.debug("Ignoring repeated tool invocation", extra={"tool_id": invocation.id})
            return []

        groups: list[MessageGroup] = []
        active = self.active_correlation
        if active is not None and active.result is None:
            active.interrupt()
            del self._pending[active.tool_id]
            self._active_tool_id = None
            groups.append(
                MessageGroup.single(
                    active.invocation, start_time=active.start_time, end_time=queued.timestamp
                )
            )
            logger.info(
                "Tool interrupted by new invocation",
                extra={
                    "tool_id": active.tool_id,
                    "tool_name": active.tool_name,
                    "next_tool_id": invocation.id,
                },
            )

        self._pending[invocation.id] = ToolCorrelation(
            invocation=queued,
            start_time=queued.timestamp,
            tool_id=invocation.id,
            tool_name=invocation.name,
        )
        self._active_tool_id = invocation.id
        return groups

    def _handle_outcome(self, queued: QueuedEvent) -> list[MessageGroup]:
        outcome = queued.event.tool_outcome
        if outcome is None or not outcome.tool_id:
            return [MessageGroup.single(queued)]

        correlation = self._pending.pop(outcome.tool_id, None)
        if correlation is None:
            logger.debug("Tool result without pending invocation", extra={"tool_id": outcome.tool_id})
            return [MessageGroup.single(queued)]

        correlation.complete(queued)
        if self._active_tool_id == outcome.tool_id:
            self._active_tool_id = None
        return [MessageGroup.tool_pair(correlation)]

    def _sweep_stale_tools(self, now: float) -> list[MessageGroup]:
        groups: list[MessageGroup] = []
        for tool_id, correlation in list(self._pending.items()):
            if now - correlation.start_time <= self.tool_timeout_ms:
                continue

            correlation.orphan()
            del self._pending[tool_id]
            if self._active_tool_id == tool_id:
                self._active_tool_id = None
            groups.append(
                MessageGroup.single(
                    correlation.invocation,
                    start_time=correlation.start_time,
                    end_time=correlation.start_time,
                )
            )
            logger.warning(
                "Tool timed out without result",
                extra={
                    "tool_id": tool_id,
                    "tool_name": correlation.tool_name,
                    "timeout_ms": self.tool_timeout_ms,
                },
            )
        return groups

    def _emit(self, groups: list[MessageGroup]) -> None:
        if groups and self.on_groups is not None:
            self.on_groups(groups)

    # ============================================================================
    # Introspection
    # ============================================================================

    @property
    def active_correlation(self) -> ToolCorrelation | None:
        if self._active_tool_id is None:
            return None
        return self._pending.get(self._active_tool_id)

    @property
    def pending(self) -> dict[str, ToolCorrelation]:
        """Snapshot of open correlations keyed by tool id."""
        return dict(self._pending)

    def get_status(self) -> dict[str, int | str | None]:
        return {
            "queue_size": len(self._queue),
            "pending_tools": len(self._pending),
            "active_tool": self._active_tool_id,
            "dropped": self.dropped_count,
        }

