"""Sink protocol shared by every occurrence consumer."""

from __future__ import annotations

from typing import Protocol

from ccpretty.reduction.models import Occurrence


class OccurrenceSink(Protocol):
    """
    Protocol for presentation sinks.

    Sinks receive occurrences in emission order, exactly once each, and must
    not mutate them. Errors raised from ``handle`` are logged by the
    pipeline and never stop processing.

    Example:
        class PrintSink:
            async def handle(self, occurrences: list[Occurrence]) -> None:
                for occurrence in occurrences:
                    print(occurrence.summary)

            async def close(self) -> None:
                pass
    """

    async def handle(self, occurrences: list[Occurrence]) -> None:
        """Present one batch of occurrences."""
        ...

    async def close(self) -> None:
        """Flush buffered output and release resources."""
        ...
