"""Plain-text helpers shared by the terminal and notification sinks."""

from __future__ import annotations

import json
import os
from typing import Any

# Parameters worth showing for a tool call, in display order
TOOL_PARAMETER_LABELS = (
    ("command", "Command"),
    ("description", "Description"),
    ("file_path", "File"),
    ("pattern", "Pattern"),
)

TODO_STATUS_ICONS = {"completed": "✅", "in_progress": "🔄"}
TODO_PRIORITY_ICONS = {"high": "🔴", "medium": "🟡"}


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def stringify(value: Any) -> str:
    """Render a tool result payload as text."""
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(
        isinstance(block, dict) and block.get("type") == "text" for block in value
    ):
        return "\n".join(str(block.get("text", "")) for block in value)
    return json.dumps(value, indent=2, default=str)


def trim_file_path(file_path: str, cwd: str | None = None) -> str:
    """Show paths under the working directory relative to it."""
    cwd = cwd if cwd is not None else os.getcwd()
    if cwd and (file_path == cwd or file_path.startswith(cwd.rstrip("/") + "/")):
        relative = file_path[len(cwd) :].lstrip("/")
        return relative or "./"
    return file_path


def tool_parameters(tool_input: dict[str, Any]) -> list[tuple[str, str]]:
    """Return (label, value) pairs for the parameters worth displaying."""
    parameters = []
    for key, label in TOOL_PARAMETER_LABELS:
        value = tool_input.get(key)
        if not value:
            continue
        if key == "file_path":
            value = trim_file_path(str(value))
        parameters.append((label, str(value)))
    return parameters


def first_tool_use(payload: dict[str, Any]) -> dict[str, Any] | None:
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, list):
        return None
    for item in content:
        if isinstance(item, dict) and item.get("type") == "tool_use":
            return item
    return None


def format_todo_line(todo: dict[str, Any]) -> str:
    status = TODO_STATUS_ICONS.get(todo.get("status", ""), "⬜")
    priority = TODO_PRIORITY_ICONS.get(todo.get("priority", ""), "🟢")
    return f"{status} {priority} {todo.get('content', '')}"


def as_number(value: Any) -> float:
    """Coerce a numeric field from the stream, falling back to zero."""
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def format_seconds(milliseconds: Any) -> str:
    return f"{as_number(milliseconds) / 1000:.2f}s"


def format_cost(payload: dict[str, Any]) -> str:
    cost = payload.get("total_cost_usd", payload.get("cost_usd"))
    return f"${as_number(cost):.4f}"
