"""Tests for the incremental JSON extractor."""

import json

from ccpretty.events.extractor import StreamExtractor
from ccpretty.events.models import EventType

from conftest import assistant_text, system_init, tool_use


class TestSingleLineObjects:
    """Objects fully contained in one line."""

    def test_extracts_one_object(self):
        extractor = StreamExtractor()
        events = extractor.feed(json.dumps(system_init()))

        assert len(events) == 1
        assert events[0].type is EventType.SYSTEM
        assert events[0].session_id == "session-1"

    def test_extracts_several_objects_on_one_line(self):
        extractor = StreamExtractor()
        line = json.dumps(system_init()) + " " + json.dumps(assistant_text("hi"))

        events = extractor.feed(line)

        assert [e.type for e in events] == [EventType.SYSTEM, EventType.ASSISTANT]

    def test_ignores_surrounding_prose(self):
        extractor = StreamExtractor()
        line = "Starting up... " + json.dumps(assistant_text("hello")) + " trailing words"

        events = extractor.feed(line)

        assert len(events) == 1
        assert events[0].text == "hello"

    def test_prose_only_line_produces_nothing(self):
        extractor = StreamExtractor()
        assert extractor.feed("just some log output") == []
        assert extractor.discarded_count == 0


class TestMultiLineObjects:
    """Pretty-printed objects spanning several feed calls."""

    def test_object_spanning_lines(self):
        extractor = StreamExtractor()
        lines = json.dumps(tool_use("t1"), indent=2).splitlines()

        collected = []
        for line in lines[:-1]:
            collected.extend(extractor.feed(line))
        assert collected == []

        collected.extend(extractor.feed(lines[-1]))
        assert len(collected) == 1
        assert collected[0].tool_invocation.id == "t1"

    def test_prefix_before_split_object(self):
        extractor = StreamExtractor()
        assert extractor.feed('noise {"type": "system",') == []

        events = extractor.feed(' "subtype": "init"}')

        assert len(events) == 1
        assert events[0].subtype == "init"


class TestStringHandling:
    """Braces and quotes inside JSON strings."""

    def test_braces_inside_strings_are_ignored(self):
        extractor = StreamExtractor()
        raw = assistant_text("function() { return {}; } }}}")

        events = extractor.feed(json.dumps(raw))

        assert len(events) == 1
        assert events[0].text == "function() { return {}; } }}}"

    def test_escaped_quotes_do_not_end_strings(self):
        extractor = StreamExtractor()
        raw = assistant_text('He said "{hello}" and left \\ {')

        events = extractor.feed(json.dumps(raw))

        assert len(events) == 1
        assert events[0].text == 'He said "{hello}" and left \\ {'

    def test_unbalanced_quote_in_prose_does_not_hide_next_object(self):
        extractor = StreamExtractor()
        line = 'it"s broken ' + json.dumps(system_init())

        events = extractor.feed(line)

        assert len(events) == 1

    def test_closing_brace_at_depth_zero_is_ignored(self):
        extractor = StreamExtractor()

        events = extractor.feed("}} " + json.dumps(system_init()))

        assert len(events) == 1


class TestValidation:
    """Candidates that decode but are not recognised events."""

    def test_unknown_type_is_discarded(self):
        extractor = StreamExtractor()

        events = extractor.feed('{"type": "heartbeat", "n": 1}')

        assert events == []
        assert extractor.discarded_count == 1

    def test_missing_type_is_discarded(self):
        extractor = StreamExtractor()
        assert extractor.feed('{"foo": "bar"}') == []
        assert extractor.discarded_count == 1

    def test_invalid_json_is_discarded_and_stream_continues(self):
        extractor = StreamExtractor()
        line = "{not json} " + json.dumps(system_init())

        events = extractor.feed(line)

        assert len(events) == 1
        assert extractor.discarded_count == 1

    def test_nested_objects_yield_only_outer(self):
        extractor = StreamExtractor()
        events = extractor.feed(json.dumps(tool_use("t1", tool_input={"opts": {"a": {"b": 1}}})))

        assert len(events) == 1
        assert events[0].tool_invocation.input == {"opts": {"a": {"b": 1}}}


class TestReset:
    """Reset clears partial state."""

    def test_reset_drops_partial_object(self):
        extractor = StreamExtractor()
        extractor.feed('{"type": "system", "subtype": "init",')

        extractor.reset()
        events = extractor.feed(json.dumps(assistant_text("fresh")))

        assert len(events) == 1
        assert events[0].type is EventType.ASSISTANT

    def test_reset_clears_string_state(self):
        extractor = StreamExtractor()
        extractor.feed('{"type": "assistant", "text": "open string {')

        extractor.reset()
        events = extractor.feed(json.dumps(system_init()))

        assert len(events) == 1
