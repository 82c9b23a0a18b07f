"""Pretty-printer for Claude Code stream-json output.

Reads the agent's noisy line stream, pairs tool invocations with their
results, drops repeated events and renders the rest to the terminal and,
optionally, to a Slack thread.

Key Components:
    - events: Event models and the incremental JSON extractor
    - correlation: Buffered tool invocation/result correlation
    - reduction: Groups to deduplicated occurrences
    - dispatch: Rate-limited FIFO task queue
    - sinks: Terminal and Slack presentation
    - pipeline: Wiring of all of the above on one event loop
"""

from __future__ import annotations

from .config import PipelineConfig, SlackConfig, load_config
from .pipeline import StreamPipeline

__all__ = [
    "PipelineConfig",
    "SlackConfig",
    "StreamPipeline",
    "load_config",
]

__version__ = "0.1.0"
