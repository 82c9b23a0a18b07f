"""Terminal rendering of occurrences as boxed panels."""

from __future__ import annotations

import logging
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from ccpretty.reduction.models import Occurrence, ToolStatus

from .formatting import (
    first_tool_use,
    format_cost,
    format_seconds,
    format_todo_line,
    stringify,
    tool_parameters,
    truncate,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TITLE = "Claude Code Session Started"

_TOOL_STYLES = {
    ToolStatus.COMPLETED: ("✅", "green"),
    ToolStatus.FAILED: ("❌", "red"),
    ToolStatus.INTERRUPTED: ("⚠️", "yellow"),
}


class TerminalSink:
    """Writes one panel per occurrence to a rich Console.

    Attributes:
        console: Target console (stdout by default).
        session_title: Title used for the session start panel.
    """

    def __init__(self, console: Console | None = None, session_title: str | None = None):
        self.console = console or Console(highlight=False)
        self.session_title = session_title or DEFAULT_SESSION_TITLE

    async def handle(self, occurrences: list[Occurrence]) -> None:
        for occurrence in occurrences:
            try:
                self.output(occurrence)
            except Exception as e:
                logger.error(
                    "Failed to render occurrence",
                    extra={"kind": occurrence.kind.value, "error": str(e), "error_type": type(e).__name__},
                )

    async def close(self) -> None:
        return None

    def output(self, occurrence: Occurrence) -> None:
        panel = self.render(occurrence)
        if panel is not None:
            self.console.print(panel)

    def render(self, occurrence: Occurrence) -> Panel | None:
        """Build the panel for an occurrence, or None when nothing is shown."""
        if occurrence.kind.is_tool_execution:
            return self._render_tool_execution(occurrence)

        payload = occurrence.payload
        event_type = payload.get("type")
        if event_type == "assistant":
            return self._render_assistant(payload)
        if event_type == "user":
            return self._render_user(payload)
        if event_type == "system":
            return self._render_system(payload)
        if event_type == "result":
            return self._render_result(payload)

        logger.debug("No terminal rendering for event", extra={"event_type": event_type})
        return None

    def _render_assistant(self, payload: dict[str, Any]) -> Panel:
        parts: list[str] = []
        for item in _content(payload):
            if not isinstance(item, dict):
                continue
            if item.get("type") == "text":
                parts.append(str(item.get("text", "")))
            elif item.get("type") == "tool_use":
                parts.append(self._format_tool_use(item))
        return _panel("\n".join(parts), "🤖 Assistant", "blue")

    def _render_user(self, payload: dict[str, Any]) -> Panel:
        parts: list[str] = []
        for item in _content(payload):
            if isinstance(item, str):
                parts.append(item)
            elif not isinstance(item, dict):
                continue
            elif item.get("type") == "text":
                parts.append(str(item.get("text", "")))
            elif item.get("type") == "tool_result":
                header = f"📤 Tool Result ({item.get('tool_use_id', 'unknown')}):"
                body = truncate(stringify(item.get("content")), 500)
                if item.get("is_error"):
                    body = f"❌ Error: {body}"
                parts.append(f"{header}\n{body}")
        return _panel("\n".join(parts), "👤 User", "green")

    def _render_system(self, payload: dict[str, Any]) -> Panel:
        lines: list[str] = []
        tools = payload.get("tools")
        if payload.get("subtype") == "init" and isinstance(tools, list):
            lines.append("🚀 Session Initialized")
            lines.append(f"Session ID: {payload.get('session_id', '')}")
            if tools:
                lines.append("")
                lines.append("Available Tools:")
                lines.extend(f"  • {tool}" for tool in tools)
        elif payload.get("message"):
            lines.append(str(payload["message"]))
        else:
            lines.append(f"System Event: {payload.get('subtype', 'unknown')}")
            lines.append(f"Session ID: {payload.get('session_id', '')}")
        return _panel("\n".join(lines), f"📋 {self.session_title}", "magenta")

    def _render_result(self, payload: dict[str, Any]) -> Panel:
        succeeded = payload.get("subtype") == "success" and not payload.get("is_error")
        lines = [f"{'✅' if succeeded else '❌'} Task {'Success' if succeeded else 'Failed'}", ""]

        result = payload.get("result")
        if isinstance(result, str) and result.strip():
            lines.extend([result, ""])

        lines.append(f"⏱️  Duration: {format_seconds(payload.get('duration_ms'))}")
        lines.append(f"🔄 API Time: {format_seconds(payload.get('duration_api_ms'))}")
        lines.append(f"💬 Turns: {payload.get('num_turns', 0)}")
        lines.append(f"💰 Cost: {format_cost(payload)}")
        return _panel("\n".join(lines), "📊 Session Result", "green" if succeeded else "red")

    def _render_tool_execution(self, occurrence: Occurrence) -> Panel:
        status = occurrence.tool_status or ToolStatus.INTERRUPTED
        icon, color = _TOOL_STYLES[status]
        duration = f" ({format_seconds(occurrence.duration)})" if occurrence.duration else ""
        lines = [f"{icon} Tool: {occurrence.tool_name} - {status.value.upper()}{duration}"]

        tool_use = first_tool_use(occurrence.payload)
        parameters = tool_parameters(tool_use.get("input") or {}) if tool_use else []
        if parameters:
            lines.append("")
            lines.append("📥 Parameters:")
            lines.extend(f"  {label}: {value}" for label, value in parameters)

        if occurrence.tool_result is not None and status is ToolStatus.COMPLETED:
            lines.extend(["", "📤 Result:", truncate(stringify(occurrence.tool_result), 300)])
        elif occurrence.tool_result is not None and status is ToolStatus.FAILED:
            lines.extend(["", "❌ Error:", stringify(occurrence.tool_result)[:500]])
        elif status is ToolStatus.INTERRUPTED:
            lines.extend(["", "⚠️ Tool execution was interrupted by a new request"])

        return _panel("\n".join(lines), "🔧 Tool Execution", color)

    def _format_tool_use(self, item: dict[str, Any]) -> str:
        tool_input = item.get("input") or {}
        lines = [f"🔧 Using Tool: {item.get('name', 'unknown')}"]
        todos = tool_input.get("todos")
        if item.get("name") == "TodoWrite" and isinstance(todos, list):
            lines.append("📋 Todo List:")
            lines.extend(f"  {format_todo_line(todo)}" for todo in todos if isinstance(todo, dict))
        else:
            lines.extend(f"  {label}: {value}" for label, value in tool_parameters(tool_input))
        return "\n".join(lines)


def _content(payload: dict[str, Any]) -> list[Any]:
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, list) else []


def _panel(body: str, title: str, border_style: str) -> Panel:
    return Panel(
        Text(body.strip()),
        title=title,
        title_align="left",
        border_style=border_style,
        padding=(1, 1),
    )
