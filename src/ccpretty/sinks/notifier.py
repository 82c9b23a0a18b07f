"""Slack notification sink.

Posts a condensed view of the session to a Slack channel thread. Every API
call goes through a DispatchLimiter, so posts leave in occurrence order and
never faster than the configured rate. Failures are logged and dropped; the
pipeline never sees them.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import aiohttp

from ccpretty.config import SlackConfig
from ccpretty.dispatch.limiter import DispatchLimiter, TaskFactory
from ccpretty.reduction.models import Occurrence, ToolStatus

from .formatting import (
    first_tool_use,
    format_cost,
    format_seconds,
    stringify,
    tool_parameters,
    truncate,
)

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 2800
MAX_RESULT_LENGTH = 2000
MAX_TOOL_OUTPUT_LENGTH = 1000

RUNNING_REACTION = "rocket"
SUCCESS_REACTION = "white_check_mark"
FAILURE_REACTION = "warning"

_STATUS_LABELS = {
    ToolStatus.COMPLETED: "✅ Completed",
    ToolStatus.FAILED: "❌ Failed",
    ToolStatus.INTERRUPTED: "⚠️ Interrupted",
}


class NotifierError(RuntimeError):
    """Slack answered a call with ``ok: false``."""


def _content(payload: dict[str, Any]) -> list[Any]:
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, list) else []


def _has_item(payload: dict[str, Any], item_type: str) -> bool:
    return any(isinstance(item, dict) and item.get("type") == item_type for item in _content(payload))


def is_significant(payload: dict[str, Any]) -> bool:
    """Whether an event is worth a Slack message at all."""
    event_type = payload.get("type")
    if event_type == "system":
        return payload.get("subtype") == "init"
    if event_type == "result":
        return True
    if event_type == "assistant":
        return _has_item(payload, "text") or _has_item(payload, "tool_use")
    if event_type == "user":
        return _has_item(payload, "tool_result")
    return False


def message_kind(occurrence: Occurrence) -> str:
    """Grouping key deciding when accumulated assistant text is flushed."""
    if occurrence.kind.is_tool_execution:
        return "tool_execution"

    payload = occurrence.payload
    event_type = payload.get("type")
    if event_type == "system" and payload.get("subtype") == "init":
        return "system_init"
    if event_type == "result":
        return "result"
    if event_type == "assistant":
        return "tool_use" if _has_item(payload, "tool_use") else "assistant"
    if event_type == "user":
        return "tool_result"
    return "unknown"


class SlackNotifier:
    """Occurrence sink posting to Slack via ``chat.postMessage``.

    The first successful post opens a thread (unless ``thread_ts`` is
    configured) and every later post replies in it. Consecutive assistant
    text occurrences are combined into one message, posted when a different
    kind of message arrives or on ``close()``.

    When the session start message opens the thread it carries a status
    reaction: a rocket while the session runs, then a check mark or a
    warning once the result arrives. With ``resume_thread`` set and no
    explicit ``thread_ts``, the thread saved by an earlier run is reused.

    Attributes:
        config: Slack connection settings.
        limiter: Rate limiter all API calls are routed through.
        thread_ts: Thread the notifier currently replies in.
        status_ts: Message carrying the session status reaction, if any.
        posted_count: Number of successful posts.
        failed_count: Number of failed calls.
    """

    def __init__(
        self,
        config: SlackConfig,
        limiter: DispatchLimiter | None = None,
        session: aiohttp.ClientSession | None = None,
        session_title: str | None = None,
    ):
        """
        Initialize the notifier.

        Args:
            config: Slack token, channel and optional initial thread.
            limiter: Shared rate limiter, one call per second by default.
            session: HTTP session to use; created lazily (and owned) when omitted.
            session_title: Heading of the session start message.
        """
        self.config = config
        self.limiter = limiter or DispatchLimiter(calls_per_second=1.0)
        self.session_title = session_title or "Session Started"
        self.thread_ts = config.thread_ts
        if self.thread_ts is None and config.resume_thread and config.thread_file:
            self.thread_ts = load_saved_thread_ts(config.thread_file)
            if self.thread_ts:
                logger.info("Resuming Slack thread", extra={"thread_ts": self.thread_ts})
        self.status_ts: str | None = None
        self.posted_count = 0
        self.failed_count = 0

        self._session = session
        self._owns_session = session is None
        self._pending_text: list[str] = []
        self._last_text: str | None = None
        self._last_kind: str | None = None
        self._status_reaction = False

    # ============================================================================
    # Sink interface
    # ============================================================================

    async def handle(self, occurrences: list[Occurrence]) -> None:
        for occurrence in occurrences:
            try:
                self.output(occurrence)
            except Exception as e:
                logger.error(
                    "Failed to prepare Slack message",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )

    async def close(self) -> None:
        """Flush accumulated text, wait for queued posts, release the session."""
        self._flush_text()
        await self.limiter.wait_for_completion()
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def output(self, occurrence: Occurrence) -> None:
        """Route one occurrence; posts are queued, not awaited."""
        if not occurrence.kind.is_tool_execution and not is_significant(occurrence.payload):
            logger.debug(
                "Skipping insignificant event for Slack",
                extra={"event_type": occurrence.event_type},
            )
            return

        kind = message_kind(occurrence)
        # Tool results are reported on their tool execution message
        if kind == "tool_result":
            return

        if self._last_kind is not None and kind != self._last_kind:
            self._flush_text()
        self._last_kind = kind

        if kind == "tool_execution":
            self._post_tool_execution(occurrence)
        elif kind == "system_init":
            self._post_session_start(occurrence.payload)
        elif kind == "result":
            self._post_result(occurrence.payload)
        elif kind == "assistant":
            self._accumulate_text(occurrence.payload)

    @property
    def pending_count(self) -> int:
        return self.limiter.pending_count

    # ============================================================================
    # Message builders
    # ============================================================================

    def _accumulate_text(self, payload: dict[str, Any]) -> None:
        for item in _content(payload):
            if isinstance(item, dict) and item.get("type") == "text":
                text = str(item.get("text", ""))
                if text.strip():
                    self._pending_text.append(text)

    def _flush_text(self) -> None:
        if not self._pending_text:
            return

        if len(self._pending_text) == 1:
            combined = self._pending_text[0]
        else:
            combined = "\n\n".join(
                f"{index}. {text}" for index, text in enumerate(self._pending_text, start=1)
            )
        self._pending_text = []

        if combined == self._last_text:
            logger.debug("Skipping repeated assistant message for Slack")
            return
        self._last_text = combined
        self._queue_post(truncate(combined, MAX_TEXT_LENGTH))

    def _post_session_start(self, payload: dict[str, Any]) -> None:
        tools = payload.get("tools") or []
        text = f"*{self.session_title}* ({payload.get('session_id', 'unknown')})"
        if tools:
            text += f"\n_Available tools: {', '.join(str(tool) for tool in tools)}_"

        if self.thread_ts is not None:
            self._queue_post(text)
            return
        self._queue_post(text, opens_status=True)
        self._queue_reaction("add", RUNNING_REACTION)
        self._status_reaction = True

    def _post_tool_execution(self, occurrence: Occurrence) -> None:
        status = occurrence.tool_status or ToolStatus.INTERRUPTED
        label = _STATUS_LABELS[status]
        duration = f" ({format_seconds(occurrence.duration)})" if occurrence.duration else ""
        fallback = f"{occurrence.tool_name} {status.value}"

        lines = [f"*🔧 {occurrence.tool_name}* {label}{duration}"]
        tool_use = first_tool_use(occurrence.payload)
        if tool_use:
            lines.extend(
                f"*{name}:* `{truncate(value, 200)}`"
                for name, value in tool_parameters(tool_use.get("input") or {})
            )
        if occurrence.tool_result is not None and status is not ToolStatus.INTERRUPTED:
            output = truncate(stringify(occurrence.tool_result), MAX_TOOL_OUTPUT_LENGTH)
            if output.strip():
                lines.append(f"```{output}```")

        blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": "\n".join(lines)}}]
        self._queue_post(fallback, blocks)

    def _post_result(self, payload: dict[str, Any]) -> None:
        succeeded = payload.get("subtype") == "success" and not payload.get("is_error")
        status = "✅ Success" if succeeded else "❌ Failed"
        duration = format_seconds(payload.get("duration_ms"))
        api_time = format_seconds(payload.get("duration_api_ms"))
        cost = format_cost(payload)

        blocks: list[dict[str, Any]] = [
            {"type": "header", "text": {"type": "plain_text", "text": f"Task {status}", "emoji": True}},
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*⏱️ Duration:*\n{duration}"},
                    {"type": "mrkdwn", "text": f"*🔄 API Time:*\n{api_time}"},
                    {"type": "mrkdwn", "text": f"*💬 Turns:*\n{payload.get('num_turns', 0)}"},
                    {"type": "mrkdwn", "text": f"*💰 Cost:*\n{cost}"},
                ],
            },
        ]
        result = payload.get("result")
        if isinstance(result, str) and result.strip():
            blocks.append(
                {"type": "section", "text": {"type": "mrkdwn", "text": truncate(result, MAX_RESULT_LENGTH)}}
            )

        fallback = f"Task {status} - Duration: {duration}, Cost: {cost}"

        if self._status_reaction:
            self._queue_reaction("remove", RUNNING_REACTION)
            self._queue_reaction("add", SUCCESS_REACTION if succeeded else FAILURE_REACTION)
        self._queue_post(fallback, blocks)

    # ============================================================================
    # Transport
    # ============================================================================

    def _queue_post(
        self, text: str, blocks: list[dict[str, Any]] | None = None, opens_status: bool = False
    ) -> None:
        self._submit(lambda: self._post(text, blocks, opens_status=opens_status))

    def _queue_reaction(self, method: str, name: str) -> None:
        self._submit(lambda: self._react(method, name))

    def _submit(self, task: TaskFactory) -> None:
        future = self.limiter.submit(task)
        future.add_done_callback(self._log_failure)

    def _log_failure(self, future: asyncio.Future) -> None:
        if future.cancelled():
            self.failed_count += 1
            logger.warning("Slack call was cancelled before it completed")
            return
        error = future.exception()
        if error is None:
            return
        self.failed_count += 1
        logger.error(
            "Slack API call failed",
            extra={"error": str(error), "error_type": type(error).__name__},
        )

    async def _post(
        self, text: str, blocks: list[dict[str, Any]] | None = None, opens_status: bool = False
    ) -> str | None:
        """
        Send one ``chat.postMessage`` call.

        The thread id is read when the call runs, not when it is queued, so
        posts queued before the thread existed still land in it.

        Args:
            text: Fallback text of the message.
            blocks: Optional Block Kit layout.
            opens_status: Carry the session status reactions on this message
                if it opens the thread.

        Returns:
            Slack timestamp of the new message.

        Raises:
            NotifierError: If Slack rejects the call.
            aiohttp.ClientError: On network errors.
        """
        payload: dict[str, Any] = {"channel": self.config.channel, "text": text}
        if self.thread_ts:
            payload["thread_ts"] = self.thread_ts
        if blocks:
            payload["blocks"] = blocks

        data = await self._call("chat.postMessage", payload)
        self.posted_count += 1

        ts = data.get("ts")
        if self.thread_ts is None and ts:
            self.thread_ts = ts
            if opens_status:
                self.status_ts = ts
            logger.info("Opened Slack thread", extra={"channel": self.config.channel, "thread_ts": ts})
            if self.config.thread_file:
                save_thread_ts(self.config.thread_file, ts)
        return ts

    async def _react(self, method: str, name: str) -> None:
        """Add or remove a reaction on the message that opened the thread.

        Does nothing when this notifier did not open the thread with the
        session start message. Slack refusals such as ``already_reacted``
        are logged at debug level only.
        """
        if self.status_ts is None:
            return

        payload = {"channel": self.config.channel, "timestamp": self.status_ts, "name": name}
        try:
            await self._call(f"reactions.{method}", payload)
        except NotifierError as e:
            logger.debug("Slack reaction refused", extra={"reaction": name, "error": str(e)})

    async def _call(self, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json; charset=utf-8",
        }
        session = self._get_session()
        async with session.post(
            f"{self.config.api_base}/{method}", headers=headers, json=payload
        ) as response:
            data = await response.json()

        if not data.get("ok"):
            raise NotifierError(f"{method} failed: {data.get('error', 'unknown_error')}")
        return data

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session


# ============================================================================
# Thread persistence
# ============================================================================


def load_saved_thread_ts(path: str | Path) -> str | None:
    """Read a thread timestamp saved by an earlier run, if any."""
    path = Path(path).expanduser()
    try:
        ts = path.read_text().strip()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Could not read saved Slack thread", extra={"path": str(path), "error": str(e)})
        return None
    return ts or None


def save_thread_ts(path: str | Path, ts: str) -> None:
    """Remember ``ts`` so a later run can resume the thread."""
    path = Path(path).expanduser()
    try:
        path.write_text(ts)
    except OSError as e:
        logger.warning("Could not save Slack thread", extra={"path": str(path), "error": str(e)})
        return
    logger.debug("Saved Slack thread", extra={"path": str(path), "thread_ts": ts})
