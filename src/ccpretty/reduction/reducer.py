"""Reduction of correlator groups into deduplicated occurrences."""

from __future__ import annotations

import logging
from typing import Any

from ccpretty.correlation.models import GroupKind, MessageGroup
from ccpretty.events.models import EventType, StreamEvent, ToolOutcome

from .models import Occurrence, OccurrenceKind, ToolStatus

logger = logging.getLogger(__name__)

_STATUS_ICONS = {
    ToolStatus.COMPLETED: "✅",
    ToolStatus.FAILED: "❌",
    ToolStatus.INTERRUPTED: "⚠️",
}


def describe_event(event: StreamEvent) -> str:
    """Build a short one-line description of an event for logs and summaries."""
    if event.type is EventType.SYSTEM:
        subtype = event.subtype or "event"
        if subtype == "init":
            return f"Session initialized ({event.session_id or 'unknown session'})"
        return event.raw.get("message") or f"System event: {subtype}"

    if event.type is EventType.RESULT:
        succeeded = event.subtype == "success" and not event.is_error
        return "Task completed" if succeeded else "Task failed"

    if event.type is EventType.USER:
        outcome = event.tool_outcome
        if outcome is not None:
            label = "Tool error" if outcome.is_error else "Tool result"
            return f"{label} ({outcome.tool_id or 'unknown tool'})"
        return event.text

    invocation = event.tool_invocation
    if invocation is not None:
        return f"Using tool: {invocation.name}"
    return event.text


def tool_summary(tool_name: str | None, status: ToolStatus) -> str:
    return f"{_STATUS_ICONS[status]} Tool: {tool_name} - {status.value.upper()}"


class Reducer:
    """
    Turns message groups into occurrences, dropping immediate repeats.

    A content-identical occurrence directly following the previously
    emitted one is treated as an upstream echo and suppressed. Only emitted
    occurrences update the comparison key, and only the immediately previous
    one is remembered.
    """

    def __init__(self) -> None:
        self._last_fingerprint: str | None = None
        self.suppressed_count = 0

    def reduce_groups(self, groups: list[MessageGroup]) -> list[Occurrence]:
        """Reduce one batch of groups, preserving order."""
        occurrences: list[Occurrence] = []
        for group in groups:
            occurrence = self.reduce_group(group)
            if self._should_include(occurrence):
                occurrences.append(occurrence)
        return occurrences

    def reduce_group(self, group: MessageGroup) -> Occurrence:
        """Map a single group to its occurrence without deduplication."""
        if group.kind is GroupKind.TOOL_PAIR:
            return self._reduce_tool_pair(group)
        return self._reduce_single(group)

    def reset(self) -> None:
        """Forget the last emitted occurrence (new logical session)."""
        self._last_fingerprint = None

    def _reduce_tool_pair(self, group: MessageGroup) -> Occurrence:
        correlation = group.correlation
        if correlation is None or correlation.result is None:
            return self._reduce_single(group)

        invocation_event = correlation.invocation.event
        outcome = correlation.result.event.tool_outcome
        failed = bool(outcome and outcome.is_error)
        status = ToolStatus.FAILED if failed else ToolStatus.COMPLETED

        return Occurrence(
            payload=self._synthesize_tool_event(invocation_event, correlation.tool_id, outcome),
            kind=OccurrenceKind.TOOL_FAILED if failed else OccurrenceKind.TOOL_COMPLETE,
            original_count=2,
            duration=group.duration,
            tool_name=correlation.tool_name,
            tool_status=status,
            tool_result=outcome.payload if outcome else None,
            summary=tool_summary(correlation.tool_name, status),
        )

    def _reduce_single(self, group: MessageGroup) -> Occurrence:
        event = group.first.event
        invocation = event.tool_invocation

        # An invocation only reaches the reducer alone when it never got a result
        if invocation is not None:
            return Occurrence(
                payload=event.raw,
                kind=OccurrenceKind.TOOL_INTERRUPTED,
                original_count=1,
                tool_name=invocation.name,
                tool_status=ToolStatus.INTERRUPTED,
                summary=tool_summary(invocation.name, ToolStatus.INTERRUPTED),
            )

        return Occurrence(
            payload=event.raw,
            kind=OccurrenceKind.SINGLE,
            original_count=1,
            summary=describe_event(event),
        )

    @staticmethod
    def _synthesize_tool_event(
        invocation_event: StreamEvent, tool_id: str, outcome: ToolOutcome | None
    ) -> dict[str, Any]:
        message = invocation_event.message
        raw_content = message.get("content") or []
        tool_use = next(
            (
                item
                for item in raw_content
                if isinstance(item, dict) and item.get("type") == "tool_use"
            ),
            {"type": "tool_use", "id": tool_id},
        )

        payload: dict[str, Any] = {
            "type": EventType.ASSISTANT.value,
            "message": {
                "id": message.get("id") or f"synthetic-{tool_id}",
                "type": "message",
                "role": "assistant",
                "model": message.get("model") or "unknown",
                "content": [tool_use],
                "stop_reason": "tool_use",
                "usage": message.get("usage") or {"input_tokens": 0, "output_tokens": 0},
            },
            "session_id": invocation_event.session_id or "",
        }
        if outcome is not None:
            payload["tool_result"] = {
                "type": "tool_result",
                "tool_use_id": outcome.tool_id,
                "content": outcome.payload,
                "is_error": outcome.is_error,
            }
        return payload

    def _should_include(self, occurrence: Occurrence) -> bool:
        fingerprint = occurrence.fingerprint()
        if fingerprint == self._last_fingerprint:
            self.suppressed_count += 1
            logger.debug(
                "Suppressing repeated occurrence",
                extra={"kind": occurrence.kind.value, "suppressed_total": self.suppressed_count},
            )
            return False

        self._last_fingerprint = fingerprint
        return True
