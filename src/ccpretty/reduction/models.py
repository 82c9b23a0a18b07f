"""Occurrence models produced by the reducer and consumed by sinks."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any


class OccurrenceKind(str, Enum):
    """Outcome tag of an occurrence."""

    SINGLE = "single"
    TOOL_COMPLETE = "tool_complete"
    TOOL_FAILED = "tool_failed"
    TOOL_INTERRUPTED = "tool_interrupted"

    @property
    def is_tool_execution(self) -> bool:
        return self is not OccurrenceKind.SINGLE


class ToolStatus(str, Enum):
    """Final status of a correlated tool execution."""

    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class Occurrence:
    """
    Canonical, deduplicated unit handed to presentation sinks.

    Occurrences are shared by every sink and must be treated as read-only,
    including the ``payload`` mapping.

    Attributes:
        payload: Event mapping to render. For tool executions this is a
            synthetic assistant event carrying the tool_use item, plus a
            ``tool_result`` key when a result arrived.
        kind: Outcome tag.
        original_count: Number of stream events folded into this occurrence.
        duration: Invocation-to-result time in milliseconds (tool pairs only).
        tool_name: Tool name for tool executions.
        tool_status: Final tool status for tool executions.
        tool_result: Raw tool result content, when one arrived.
        summary: One-line human-readable description.
    """

    payload: dict[str, Any]
    kind: OccurrenceKind
    original_count: int = 1
    duration: float | None = None
    tool_name: str | None = None
    tool_status: ToolStatus | None = None
    tool_result: Any = None
    summary: str = ""

    @property
    def event_type(self) -> str | None:
        return self.payload.get("type")

    def fingerprint(self) -> str:
        """Comparison key used to suppress immediate repeats."""
        serialized = json.dumps(self.payload, sort_keys=True, default=str)
        return f"{self.kind.value}:{serialized}"
