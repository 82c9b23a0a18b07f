"""Shared fixtures for ccpretty tests."""

from typing import Any

import pytest

from ccpretty.events.models import StreamEvent


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    def set(self, ms: float) -> None:
        self.now = ms


def system_init(session_id: str = "session-1", tools: list[str] | None = None) -> dict[str, Any]:
    return {
        "type": "system",
        "subtype": "init",
        "session_id": session_id,
        "tools": tools if tools is not None else ["Bash", "Read"],
    }


def assistant_text(text: str, message_id: str = "msg-text") -> dict[str, Any]:
    return {
        "type": "assistant",
        "message": {
            "id": message_id,
            "type": "message",
            "role": "assistant",
            "content": [{"type": "text", "text": text}],
        },
        "session_id": "session-1",
    }


def tool_use(
    tool_id: str,
    name: str = "Bash",
    tool_input: dict[str, Any] | None = None,
    message_id: str | None = None,
) -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": "message",
        "role": "assistant",
        "content": [
            {
                "type": "tool_use",
                "id": tool_id,
                "name": name,
                "input": tool_input if tool_input is not None else {"command": "ls"},
            }
        ],
    }
    if message_id is not None:
        message["id"] = message_id
    return {"type": "assistant", "message": message, "session_id": "session-1"}


def tool_result(tool_id: str, content: Any = "a.txt", is_error: bool = False) -> dict[str, Any]:
    return {
        "type": "user",
        "message": {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": tool_id,
                    "content": content,
                    "is_error": is_error,
                }
            ],
        },
        "session_id": "session-1",
    }


def result_event(is_error: bool = False, result: str = "All done") -> dict[str, Any]:
    return {
        "type": "result",
        "subtype": "error_during_execution" if is_error else "success",
        "is_error": is_error,
        "result": result,
        "duration_ms": 1500,
        "duration_api_ms": 1200,
        "num_turns": 3,
        "total_cost_usd": 0.0123,
        "session_id": "session-1",
    }


def event(raw: dict[str, Any]) -> StreamEvent:
    parsed = StreamEvent.from_raw(raw)
    assert parsed is not None
    return parsed


@pytest.fixture
def clock() -> FakeClock:
    """Fake millisecond clock starting at zero."""
    return FakeClock()
