"""Event data models for the Claude stream-json protocol.

The upstream agent writes one JSON object per logical event. Only four
top-level shapes are recognised; everything else is dropped at the
extractor boundary and never reaches the correlator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Recognised top-level ``type`` tags."""

    ASSISTANT = "assistant"
    USER = "user"
    SYSTEM = "system"
    RESULT = "result"


@dataclass(frozen=True)
class TextContent:
    """Plain text item inside a message."""

    text: str


@dataclass(frozen=True)
class ToolInvocation:
    """A ``tool_use`` item: the agent asks to run a tool.

    Attributes:
        id: Invocation identifier, empty when the producer omitted it.
        name: Tool name (e.g. "Bash", "Read").
        input: Tool parameters as sent by the agent.
    """

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolOutcome:
    """A ``tool_result`` item: the result of an earlier invocation.

    Attributes:
        tool_id: Identifier of the invocation this result answers.
        payload: Raw result content (usually a string, sometimes a list of blocks).
        is_error: Whether the tool reported a failure.
    """

    tool_id: str
    payload: Any
    is_error: bool = False


ContentItem = TextContent | ToolInvocation | ToolOutcome


def parse_content_item(item: Any) -> ContentItem | None:
    """Convert one raw content block to its typed form.

    Unknown block types (images, thinking, ...) return None.
    """
    if not isinstance(item, dict):
        return None

    item_type = item.get("type")
    if item_type == "text":
        return TextContent(text=str(item.get("text", "")))
    if item_type == "tool_use":
        tool_input = item.get("input")
        return ToolInvocation(
            id=str(item.get("id") or ""),
            name=str(item.get("name") or "unknown"),
            input=tool_input if isinstance(tool_input, dict) else {},
        )
    if item_type == "tool_result":
        return ToolOutcome(
            tool_id=str(item.get("tool_use_id") or ""),
            payload=item.get("content"),
            is_error=bool(item.get("is_error", False)),
        )
    return None


@dataclass(frozen=True)
class StreamEvent:
    """One validated event decoded from the stream.

    The raw mapping is kept verbatim so sinks can render fields the typed
    accessors do not cover (usage, cost, model, ...).

    Attributes:
        type: Top-level event tag.
        raw: Decoded JSON object exactly as received.
    """

    type: EventType
    raw: dict[str, Any]

    @classmethod
    def from_raw(cls, obj: Any) -> StreamEvent | None:
        """Validate a decoded JSON value.

        Returns:
            A StreamEvent, or None when ``obj`` is not a mapping with a
            recognised ``type`` field.
        """
        if not isinstance(obj, dict):
            return None
        try:
            event_type = EventType(obj.get("type"))
        except ValueError:
            return None
        return cls(type=event_type, raw=obj)

    @property
    def message(self) -> dict[str, Any]:
        message = self.raw.get("message")
        return message if isinstance(message, dict) else {}

    @property
    def content_items(self) -> list[ContentItem]:
        content = self.message.get("content")
        if not isinstance(content, list):
            return []
        items = (parse_content_item(item) for item in content)
        return [item for item in items if item is not None]

    @property
    def tool_invocation(self) -> ToolInvocation | None:
        """First tool_use item of an assistant event, if any."""
        if self.type is not EventType.ASSISTANT:
            return None
        for item in self.content_items:
            if isinstance(item, ToolInvocation):
                return item
        return None

    @property
    def tool_outcome(self) -> ToolOutcome | None:
        """First tool_result item of a user event, if any."""
        if self.type is not EventType.USER:
            return None
        for item in self.content_items:
            if isinstance(item, ToolOutcome):
                return item
        return None

    @property
    def text(self) -> str:
        return "\n\n".join(
            item.text for item in self.content_items if isinstance(item, TextContent)
        )

    @property
    def is_error(self) -> bool:
        return bool(self.raw.get("is_error", False))

    @property
    def subtype(self) -> str | None:
        return self.raw.get("subtype")

    @property
    def session_id(self) -> str | None:
        return self.raw.get("session_id")
