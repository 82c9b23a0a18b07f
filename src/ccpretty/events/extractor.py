"""Incremental JSON object extraction from a noisy line stream.

The producer interleaves prose with JSON and may pretty-print objects across
several lines, so lines cannot be decoded one at a time. This module keeps a
small buffer and a brace-depth counter and hands each balanced ``{...}``
candidate to the JSON decoder.
"""

from __future__ import annotations

import json
import logging

from .models import StreamEvent

logger = logging.getLogger(__name__)


class StreamExtractor:
    """Recovers complete, validated events from raw text lines.

    Braces are only counted outside of JSON strings; string state is tracked
    while an object is open, with a backslash escaping the next character.

    Attributes:
        discarded_count: Candidates that failed to decode or validate.

    Example:
        >>> extractor = StreamExtractor()
        >>> extractor.feed('noise {"type": "system",')
        []
        >>> [e.type.value for e in extractor.feed(' "subtype": "init"}')]
        ['system']
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._depth = 0
        self._start: int | None = None
        self._in_string = False
        self._escaped = False
        self.discarded_count = 0

    def feed(self, line: str) -> list[StreamEvent]:
        """Feed one line and return every event it completes.

        Args:
            line: Raw line without its trailing newline.

        Returns:
            Validated events in stream order (possibly empty).
        """
        events: list[StreamEvent] = []
        base = len(self._buffer)
        self._buffer += line + "\n"
        consumed = 0

        for offset, char in enumerate(line):
            position = base + offset - consumed

            if self._depth > 0 and self._in_string:
                if self._escaped:
                    self._escaped = False
                elif char == "\\":
                    self._escaped = True
                elif char == '"':
                    self._in_string = False
                continue

            if char == '"' and self._depth > 0:
                self._in_string = True
            elif char == "{":
                if self._depth == 0:
                    self._start = position
                self._depth += 1
            elif char == "}" and self._depth > 0:
                self._depth -= 1
                if self._depth == 0 and self._start is not None:
                    event = self._decode(self._buffer[self._start : position + 1])
                    if event is not None:
                        events.append(event)
                    # Drop everything up to and including the consumed object
                    self._buffer = self._buffer[position + 1 :]
                    consumed += position + 1
                    self._start = None

        if self._depth == 0:
            self._buffer = ""
            self._start = None

        return events

    def _decode(self, candidate: str) -> StreamEvent | None:
        try:
            obj = json.loads(candidate)
        except ValueError as e:
            self.discarded_count += 1
            logger.debug(
                "Discarding undecodable JSON candidate",
                extra={"error": str(e), "candidate_length": len(candidate)},
            )
            return None

        event = StreamEvent.from_raw(obj)
        if event is None:
            self.discarded_count += 1
            logger.debug(
                "Discarding JSON object with unrecognised shape",
                extra={"object_type": obj.get("type") if isinstance(obj, dict) else None},
            )
        return event

    def reset(self) -> None:
        """Clear all buffered state so the extractor can serve a new stream."""
        self._buffer = ""
        self._depth = 0
        self._start = None
        self._in_string = False
        self._escaped = False
