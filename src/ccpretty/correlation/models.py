"""Data models for event correlation.

This module defines the queue entries, the per-invocation tool correlation
state machine, and the groups handed from the correlator to the reducer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ccpretty.events.models import StreamEvent


@dataclass
class QueuedEvent:
    """A validated event waiting in the correlator buffer.

    Attributes:
        id: Identifier unique within one correlator (``evt_<n>``).
        timestamp: Arrival time in milliseconds (correlator clock).
        event: The wrapped stream event.
        consumed: Set once the event has been routed; consumed entries are
            swept from the buffer at the end of each pass.
    """

    id: str
    timestamp: float
    event: StreamEvent
    consumed: bool = False


class CorrelationState(Enum):
    """Lifecycle of a tool correlation.

    Attributes:
        OPEN: Invocation seen, waiting for its result.
        COMPLETED: Matching result arrived.
        INTERRUPTED: A newer invocation started while this one was active.
        ORPHANED: Timed out, or still open at shutdown.
    """

    OPEN = "open"
    COMPLETED = "completed"
    INTERRUPTED = "interrupted"
    ORPHANED = "orphaned"


@dataclass
class ToolCorrelation:
    """In-flight pairing of a tool invocation with its eventual result.

    All three non-OPEN states are terminal; a correlation ends exactly once.
    """

    invocation: QueuedEvent
    start_time: float
    tool_id: str
    tool_name: str
    result: QueuedEvent | None = None
    state: CorrelationState = CorrelationState.OPEN

    @property
    def interrupted(self) -> bool:
        return self.state is CorrelationState.INTERRUPTED

    @property
    def is_open(self) -> bool:
        return self.state is CorrelationState.OPEN

    def complete(self, result: QueuedEvent) -> None:
        self._transition(CorrelationState.COMPLETED)
        self.result = result

    def interrupt(self) -> None:
        self._transition(CorrelationState.INTERRUPTED)

    def orphan(self) -> None:
        self._transition(CorrelationState.ORPHANED)

    def _transition(self, new_state: CorrelationState) -> None:
        if self.state is not CorrelationState.OPEN:
            raise ValueError(
                f"Tool correlation {self.tool_id} already {self.state.value}, "
                f"cannot become {new_state.value}"
            )
        self.state = new_state


class GroupKind(str, Enum):
    """Kinds of groups emitted by the correlator."""

    SINGLE = "single"
    TOOL_PAIR = "tool_pair"
    # Reserved for multi-event aggregation; reduced like SINGLE
    BATCH = "batch"


@dataclass
class MessageGroup:
    """Unit of work handed from the correlator to the reducer.

    Attributes:
        kind: Group kind.
        events: Queued events in the group (one for SINGLE, invocation then
            result for TOOL_PAIR).
        start_time: Earliest relevant timestamp (ms).
        end_time: Latest relevant timestamp (ms).
        correlation: The completed correlation for TOOL_PAIR groups.
    """

    kind: GroupKind
    events: list[QueuedEvent]
    start_time: float
    end_time: float
    correlation: ToolCorrelation | None = field(default=None)

    @classmethod
    def single(
        cls, queued: QueuedEvent, start_time: float | None = None, end_time: float | None = None
    ) -> MessageGroup:
        return cls(
            kind=GroupKind.SINGLE,
            events=[queued],
            start_time=queued.timestamp if start_time is None else start_time,
            end_time=queued.timestamp if end_time is None else end_time,
        )

    @classmethod
    def tool_pair(cls, correlation: ToolCorrelation) -> MessageGroup:
        if correlation.result is None:
            raise ValueError(f"Tool correlation {correlation.tool_id} has no result")
        return cls(
            kind=GroupKind.TOOL_PAIR,
            events=[correlation.invocation, correlation.result],
            start_time=correlation.start_time,
            end_time=correlation.result.timestamp,
            correlation=correlation,
        )

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def first(self) -> QueuedEvent:
        return self.events[0]
