"""Stream event models and extraction."""

from ccpretty.events.extractor import StreamExtractor
from ccpretty.events.models import (
    ContentItem,
    EventType,
    StreamEvent,
    TextContent,
    ToolInvocation,
    ToolOutcome,
    parse_content_item,
)

__all__ = [
    "ContentItem",
    "EventType",
    "StreamEvent",
    "StreamExtractor",
    "TextContent",
    "ToolInvocation",
    "ToolOutcome",
    "parse_content_item",
]
