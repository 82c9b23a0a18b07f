"""Command-line entry point.

Usage:
    claude -p "..." --output-format stream-json --verbose | ccpretty
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import stat
import sys
from collections.abc import AsyncIterator
from typing import IO

from ccpretty.config import PipelineConfig, load_config
from ccpretty.dispatch.limiter import DispatchLimiter
from ccpretty.logging_manager import LoggingManager
from ccpretty.pipeline import StreamPipeline
from ccpretty.sinks.base import OccurrenceSink
from ccpretty.sinks.notifier import SlackNotifier
from ccpretty.sinks.terminal import TerminalSink

logger = logging.getLogger(__name__)

# Single stream-json lines can carry whole file contents
STDIN_LINE_LIMIT = 16 * 1024 * 1024


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ccpretty",
        description="Pretty-print a Claude Code stream-json session from stdin.",
    )
    p.add_argument("--config", help="YAML configuration file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--log-dir", help="Directory for rotating JSON log files")
    p.add_argument("--sample-interval-ms", type=int, help="Correlation tick interval")
    p.add_argument("--tool-timeout-ms", type=int, help="Time before an unanswered tool is orphaned")
    p.add_argument(
        "--no-idle-timeout",
        action="store_true",
        help="Keep waiting for input no matter how long stdin stays silent",
    )
    p.add_argument(
        "--resume-slack-thread",
        action="store_true",
        help="Reply in the Slack thread saved by the previous run",
    )
    return p


def apply_arguments(config: PipelineConfig, args: argparse.Namespace, environ=None) -> PipelineConfig:
    """Layer command-line flags over a loaded configuration."""
    environ = os.environ if environ is None else environ

    if args.debug or environ.get("CCPRETTY_DEBUG"):
        config.log_level = "DEBUG"
    if args.log_dir:
        config.log_dir = args.log_dir
    if args.sample_interval_ms is not None:
        config.sample_interval_ms = args.sample_interval_ms
    if args.tool_timeout_ms is not None:
        config.tool_timeout_ms = args.tool_timeout_ms
    if args.no_idle_timeout:
        config.idle_timeout_seconds = None
    if args.resume_slack_thread:
        if config.slack is None:
            logger.warning("--resume-slack-thread ignored: Slack is not configured")
        else:
            config.slack.resume_thread = True
    config.validate()
    return config


def build_sinks(config: PipelineConfig) -> list[OccurrenceSink]:
    sinks: list[OccurrenceSink] = [TerminalSink(session_title=config.session_title)]
    if config.slack is not None:
        limiter = DispatchLimiter(calls_per_second=config.dispatch_rate)
        sinks.append(SlackNotifier(config.slack, limiter, session_title=config.session_title))
        logger.info("Slack notifications enabled", extra={"channel": config.slack.channel})
    return sinks


async def read_lines(stream: IO[str] | None = None) -> AsyncIterator[str]:
    """Yield decoded lines from stdin without blocking the event loop.

    Pipes and sockets are read through a ``StreamReader``. Anything else,
    such as a regular file redirected with ``<``, is read line by line in
    the default executor.
    """
    stream = stream or sys.stdin
    loop = asyncio.get_running_loop()

    if not _is_pipe(stream):
        while True:
            text = await loop.run_in_executor(None, stream.readline)
            if not text:
                return
            yield text

    reader = asyncio.StreamReader(limit=STDIN_LINE_LIMIT)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, stream)

    while True:
        line = await reader.readline()
        if not line:
            return
        yield line.decode("utf-8", errors="replace")


def _is_pipe(stream: IO[str]) -> bool:
    try:
        mode = os.fstat(stream.fileno()).st_mode
    except (AttributeError, OSError, ValueError):
        return False
    return stat.S_ISFIFO(mode) or stat.S_ISSOCK(mode) or stat.S_ISCHR(mode)


async def run(config: PipelineConfig) -> None:
    """Run the pipeline over stdin until end of input or a stop signal."""
    pipeline = StreamPipeline(config, build_sinks(config))
    task = asyncio.create_task(pipeline.run(read_lines()))

    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, task.cancel)
            installed.append(sig)
        except NotImplementedError:
            logger.debug("Signal handlers unavailable", extra={"signal": sig.name})

    try:
        await task
    except asyncio.CancelledError:
        logger.info("Interrupted, pending output flushed")
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = apply_arguments(load_config(args.config), args)
        logging_manager = LoggingManager(log_level=config.log_level, log_dir=config.log_dir)
    except (FileNotFoundError, ValueError) as e:
        print(f"ccpretty: configuration error: {e}", file=sys.stderr)
        return 1

    try:
        asyncio.run(run(config))
    finally:
        logging_manager.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
