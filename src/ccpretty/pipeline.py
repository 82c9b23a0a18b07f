"""Wiring of the stream pipeline.

lines -> StreamExtractor -> EventCorrelator -> batch queue -> Reducer -> sinks

Everything runs on one asyncio event loop. The correlator tick only puts
batches on an unbounded queue; a single consumer task reduces them in order
and awaits each sink, so slow sinks never delay correlation.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable, Sequence

from ccpretty.config import PipelineConfig
from ccpretty.correlation.correlator import EventCorrelator
from ccpretty.correlation.models import MessageGroup
from ccpretty.events.extractor import StreamExtractor
from ccpretty.reduction.models import Occurrence
from ccpretty.reduction.reducer import Reducer
from ccpretty.sinks.base import OccurrenceSink

logger = logging.getLogger(__name__)


class StreamPipeline:
    """Runs one input stream through correlation and reduction into sinks.

    Example:
        pipeline = StreamPipeline(config, [TerminalSink()])
        await pipeline.run(lines)
    """

    def __init__(
        self,
        config: PipelineConfig,
        sinks: Sequence[OccurrenceSink],
        clock: Callable[[], float] | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline settings.
            sinks: Receivers of every occurrence batch, called in order.
            clock: Millisecond clock for the correlator (default: monotonic).
        """
        self.config = config
        self.sinks = list(sinks)
        self.extractor = StreamExtractor()
        self.reducer = Reducer()
        self.correlator = EventCorrelator(
            on_groups=self._on_groups,
            sample_interval_ms=config.sample_interval_ms,
            tool_timeout_ms=config.tool_timeout_ms,
            max_queue_size=config.max_queue_size,
            clock=clock,
        )

        self._batches: asyncio.Queue[list[MessageGroup] | None] = asyncio.Queue()
        self._consumer: asyncio.Task | None = None
        self._stopped = False
        self.delivered_count = 0

    # ============================================================================
    # Lifecycle
    # ============================================================================

    async def start(self) -> None:
        """Start the correlator tick and the batch consumer.

        Raises:
            RuntimeError: If the pipeline was already started or stopped.
        """
        if self._consumer is not None or self._stopped:
            raise RuntimeError("StreamPipeline cannot be started twice")

        self._consumer = asyncio.create_task(self._consume())
        self.correlator.start()
        logger.debug("Stream pipeline started", extra={"sinks": len(self.sinks)})

    async def stop(self) -> None:
        """Flush everything held and close the sinks.

        Order: correlator flush, consumer drain, then each sink's ``close()``.
        Calling stop more than once is a no-op.
        """
        if self._stopped:
            return
        self._stopped = True

        self.correlator.stop()
        self._batches.put_nowait(None)
        if self._consumer is not None:
            await self._consumer
        else:
            await self._consume()

        for sink in self.sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("Sink failed to close", extra={"sink": type(sink).__name__})

        logger.info(
            "Stream pipeline stopped",
            extra={
                "delivered": self.delivered_count,
                "suppressed": self.reducer.suppressed_count,
                "discarded": self.extractor.discarded_count,
                "dropped": self.correlator.dropped_count,
            },
        )

    async def run(self, lines: AsyncIterable[str]) -> None:
        """Consume ``lines`` until exhausted, idle too long, or cancelled.

        The pipeline is always stopped (and flushed) on the way out.
        """
        idle_timeout = self.config.idle_timeout_seconds
        iterator = lines.__aiter__()
        await self.start()
        try:
            while True:
                try:
                    if idle_timeout is None:
                        line = await iterator.__anext__()
                    else:
                        line = await asyncio.wait_for(iterator.__anext__(), idle_timeout)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    logger.warning(
                        "No input received, shutting down",
                        extra={"idle_timeout_seconds": idle_timeout},
                    )
                    break
                self.feed_line(line)
        finally:
            await self.stop()

    # ============================================================================
    # Processing
    # ============================================================================

    def feed_line(self, line: str) -> int:
        """Extract events from one raw line and buffer them.

        Returns:
            Number of events the line completed.
        """
        events = self.extractor.feed(line.rstrip("\r\n"))
        for event in events:
            self.correlator.enqueue(event)
        return len(events)

    def _on_groups(self, groups: list[MessageGroup]) -> None:
        self._batches.put_nowait(groups)

    async def _consume(self) -> None:
        while True:
            groups = await self._batches.get()
            try:
                if groups is None:
                    return
                occurrences = self.reducer.reduce_groups(groups)
                if occurrences:
                    await self._deliver(occurrences)
            finally:
                self._batches.task_done()

    async def _deliver(self, occurrences: list[Occurrence]) -> None:
        for sink in self.sinks:
            try:
                await sink.handle(occurrences)
            except Exception:
                logger.exception(
                    "Sink failed to handle occurrences",
                    extra={"sink": type(sink).__name__, "count": len(occurrences)},
                )
        self.delivered_count += len(occurrences)

    def get_status(self) -> dict[str, int | str | None]:
        status = self.correlator.get_status()
        status.update(
            {
                "batches_waiting": self._batches.qsize(),
                "delivered": self.delivered_count,
                "suppressed": self.reducer.suppressed_count,
                "discarded": self.extractor.discarded_count,
            }
        )
        return status
