"""Configuration for the ccpretty pipeline.

Settings come from an optional YAML file, then ``CCPRETTY_*`` environment
variables, then command-line flags (applied by the CLI). Later sources win.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "CCPRETTY_"

# Environment variable suffix -> (field name, converter)
_ENV_FIELDS = {
    "SAMPLE_INTERVAL_MS": ("sample_interval_ms", int),
    "TOOL_TIMEOUT_MS": ("tool_timeout_ms", int),
    "MAX_QUEUE_SIZE": ("max_queue_size", int),
    "DISPATCH_RATE": ("dispatch_rate", float),
    "LOG_LEVEL": ("log_level", str),
    "LOG_DIR": ("log_dir", str),
    "TITLE": ("session_title", str),
}

DEFAULT_THREAD_FILE = "~/.ccpretty_slack_ts"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _flag(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(raw)


_ENV_SLACK_FIELDS = {
    "SLACK_TOKEN": ("token", str),
    "SLACK_CHANNEL": ("channel", str),
    "SLACK_THREAD_TS": ("thread_ts", str),
    "SLACK_THREAD_FILE": ("thread_file", str),
    "SLACK_RESUME_THREAD": ("resume_thread", _flag),
}


@dataclass
class SlackConfig:
    """Slack connection settings.

    Attributes:
        token: Bot token used as the Bearer credential.
        channel: Channel id or name to post in.
        thread_ts: Existing thread to reply in (default: open a new one).
        thread_file: File the ts of a newly opened thread is saved to; None
            disables saving (default: ``~/.ccpretty_slack_ts``).
        resume_thread: Reply in the thread saved in ``thread_file`` when no
            ``thread_ts`` is given.
        api_base: Slack Web API base URL.
        timeout_seconds: Total timeout per HTTP call.
    """

    token: str
    channel: str
    thread_ts: str | None = None
    thread_file: str | None = DEFAULT_THREAD_FILE
    resume_thread: bool = False
    api_base: str = "https://slack.com/api"
    timeout_seconds: float = 10.0


@dataclass
class PipelineConfig:
    """Configuration for the stream pipeline.

    Attributes:
        sample_interval_ms: Correlator tick period and minimum event age (default: 500).
        tool_timeout_ms: Age after which an unanswered tool is orphaned (default: 30000).
        max_queue_size: Correlator buffer capacity (default: 1000).
        dispatch_rate: Maximum Slack calls per second (default: 1.0).
        idle_timeout_seconds: Stop after this long without input; None disables it (default: 30).
        log_level: Level of the ``ccpretty`` logger (default: INFO).
        log_dir: Directory for rotating JSON log files (default: no file logging).
        session_title: Heading used for the session start panel and message.
        slack: Slack settings; None disables the Slack sink.
    """

    sample_interval_ms: int = 500
    tool_timeout_ms: int = 30_000
    max_queue_size: int = 1000
    dispatch_rate: float = 1.0
    idle_timeout_seconds: float | None = 30.0
    log_level: str = "INFO"
    log_dir: str | None = None
    session_title: str | None = None
    slack: SlackConfig | None = None

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If any interval, capacity or rate is not positive.
        """
        for name in ("sample_interval_ms", "tool_timeout_ms", "max_queue_size", "dispatch_rate"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

        if self.idle_timeout_seconds is not None and self.idle_timeout_seconds <= 0:
            raise ValueError(
                f"idle_timeout_seconds must be positive, got {self.idle_timeout_seconds}"
            )

        if self.slack is not None and self.slack.timeout_seconds <= 0:
            raise ValueError(
                f"slack.timeout_seconds must be positive, got {self.slack.timeout_seconds}"
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse configuration YAML: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping, got {type(data).__name__}")

    logger.debug("Loaded configuration file", extra={"path": str(path)})
    return data


def _check_keys(data: Mapping[str, Any], allowed: set[str], section: str) -> None:
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"Unknown {section} configuration keys: {', '.join(unknown)}")


def _convert(name: str, raw: str, converter: Callable[[str], Any]) -> Any:
    try:
        return converter(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}") from e


def load_config(
    path: str | Path | None = None, environ: Mapping[str, str] | None = None
) -> PipelineConfig:
    """Build the pipeline configuration.

    Args:
        path: Optional YAML file. Top-level keys mirror PipelineConfig fields;
            Slack settings live under a ``slack`` mapping.
        environ: Environment to read overrides from (default: ``os.environ``).

    Returns:
        Validated configuration.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: On YAML errors, unknown keys or invalid values.

    Example:
        config = load_config("ccpretty.yaml")
        if config.slack:
            print(config.slack.channel)
    """
    environ = os.environ if environ is None else environ

    data = _read_yaml(Path(path)) if path is not None else {}
    field_names = {f.name for f in dataclasses.fields(PipelineConfig)}
    _check_keys(data, field_names, "pipeline")

    values = {key: value for key, value in data.items() if key != "slack"}
    slack_values: dict[str, Any] = dict(data.get("slack") or {})
    _check_keys(slack_values, {f.name for f in dataclasses.fields(SlackConfig)}, "slack")

    for suffix, (field_name, converter) in _ENV_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw:
            values[field_name] = _convert(suffix, raw, converter)

    for suffix, (field_name, converter) in _ENV_SLACK_FIELDS.items():
        raw = environ.get(ENV_PREFIX + suffix)
        if raw:
            slack_values[field_name] = _convert(suffix, raw, converter)

    if slack_values.get("token") and slack_values.get("channel"):
        values["slack"] = SlackConfig(**slack_values)
    elif slack_values:
        logger.info("Slack disabled: token and channel are both required")

    config = PipelineConfig(**values)
    config.validate()
    return config
