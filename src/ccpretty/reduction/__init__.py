"""Reduction of correlator groups into occurrences."""

from ccpretty.reduction.models import Occurrence, OccurrenceKind, ToolStatus
from ccpretty.reduction.reducer import Reducer, describe_event, tool_summary

__all__ = [
    "Occurrence",
    "OccurrenceKind",
    "Reducer",
    "ToolStatus",
    "describe_event",
    "tool_summary",
]
