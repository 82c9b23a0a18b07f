"""Tests for stream event models."""

from ccpretty.events.models import (
    EventType,
    StreamEvent,
    TextContent,
    ToolInvocation,
    ToolOutcome,
    parse_content_item,
)

from conftest import assistant_text, event, result_event, system_init, tool_result, tool_use


class TestFromRaw:
    """Validation of decoded objects."""

    def test_recognised_types(self):
        for raw in (system_init(), assistant_text("x"), tool_result("t1"), result_event()):
            assert StreamEvent.from_raw(raw) is not None

    def test_rejects_non_mapping(self):
        assert StreamEvent.from_raw([1, 2]) is None
        assert StreamEvent.from_raw("assistant") is None

    def test_rejects_unknown_type(self):
        assert StreamEvent.from_raw({"type": "progress"}) is None
        assert StreamEvent.from_raw({}) is None

    def test_raw_is_kept_verbatim(self):
        raw = result_event()
        assert event(raw).raw is raw


class TestContentItems:
    """Typed content accessors."""

    def test_parse_text(self):
        assert parse_content_item({"type": "text", "text": "hi"}) == TextContent(text="hi")

    def test_parse_tool_use_without_id(self):
        item = parse_content_item({"type": "tool_use", "name": "Read"})
        assert item == ToolInvocation(id="", name="Read", input={})

    def test_parse_tool_result_without_reference(self):
        item = parse_content_item({"type": "tool_result", "content": "x"})
        assert item == ToolOutcome(tool_id="", payload="x", is_error=False)

    def test_unknown_items_are_skipped(self):
        raw = assistant_text("visible")
        raw["message"]["content"].insert(0, {"type": "thinking", "thinking": "..."})

        assert event(raw).content_items == [TextContent(text="visible")]

    def test_non_list_content_is_empty(self):
        raw = {"type": "user", "message": {"content": "plain prompt"}}
        assert event(raw).content_items == []

    def test_tool_invocation_only_for_assistant(self):
        assert event(tool_use("t1")).tool_invocation.name == "Bash"
        assert event(tool_result("t1")).tool_invocation is None

    def test_tool_outcome_only_for_user(self):
        outcome = event(tool_result("t1", content="boom", is_error=True)).tool_outcome
        assert outcome == ToolOutcome(tool_id="t1", payload="boom", is_error=True)
        assert event(tool_use("t1")).tool_outcome is None

    def test_text_joins_items(self):
        raw = assistant_text("one")
        raw["message"]["content"].append({"type": "text", "text": "two"})
        assert event(raw).text == "one\n\ntwo"


class TestScalarAccessors:
    def test_result_fields(self):
        parsed = event(result_event(is_error=True))
        assert parsed.type is EventType.RESULT
        assert parsed.is_error is True
        assert parsed.subtype == "error_during_execution"
        assert parsed.session_id == "session-1"
