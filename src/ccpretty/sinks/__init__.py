"""Presentation sinks for occurrences."""

from ccpretty.sinks.base import OccurrenceSink
from ccpretty.sinks.notifier import NotifierError, SlackNotifier
from ccpretty.sinks.terminal import TerminalSink

__all__ = [
    "NotifierError",
    "OccurrenceSink",
    "SlackNotifier",
    "TerminalSink",
]
