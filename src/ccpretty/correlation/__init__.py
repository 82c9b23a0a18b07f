"""Correlation of tool invocations with their results.

Example:
    >>> from ccpretty.correlation import EventCorrelator
    >>> correlator = EventCorrelator(on_groups=print)
    >>> correlator.enqueue(event)
    >>> correlator.process_queue(force=True)
"""

from __future__ import annotations

from .correlator import EventCorrelator, GroupHandler
from .models import CorrelationState, GroupKind, MessageGroup, QueuedEvent, ToolCorrelation

__all__ = [
    "CorrelationState",
    "EventCorrelator",
    "GroupHandler",
    "GroupKind",
    "MessageGroup",
    "QueuedEvent",
    "ToolCorrelation",
]
