"""Logging setup for ccpretty.

Stdout carries the rendered session, so diagnostics always go to stderr and,
optionally, to a rotating JSON-lines file.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "ccpretty"

# Attributes every LogRecord has; anything else arrived through ``extra``
_STANDARD_ATTRIBUTES = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "taskName",
        "extras",
    ]
)


class JsonExtraFilter(logging.Filter):
    """Collects ``extra`` fields of a record into ``record.extras``."""

    def filter(self, record):
        extras = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRIBUTES:
                continue
            try:
                json.dumps(value)
                extras[key] = value
            except (TypeError, ValueError):
                extras[key] = str(value)
        record.extras = extras
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, extra fields merged in."""

    def format(self, record):
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }
        log_obj.update(getattr(record, "extras", {}))
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


class LoggingManager:
    """Configures the ``ccpretty`` logger hierarchy."""

    def __init__(
        self,
        log_level: str = "INFO",
        log_dir: str | Path | None = None,
        stream=None,
    ):
        """Initialize logging.

        Args:
            log_level: Level name for the console handler and logger.
            log_dir: Directory for ``ccpretty.log``; no file logging when None.
            stream: Console stream (default: stderr).

        Raises:
            ValueError: If ``log_level`` is not a known level name.
        """
        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {log_level}")

        self.log_level = level
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_file: Path | None = None

        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(logging.DEBUG if self.log_dir else self.log_level)
        self.logger.propagate = False
        self._close_handlers()

        console_handler = logging.StreamHandler(stream or sys.stderr)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        self.logger.addHandler(console_handler)

        if self.log_dir is not None:
            self._setup_file_handler()

    def _setup_file_handler(self):
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / "ccpretty.log"

        file_handler = logging.handlers.RotatingFileHandler(
            self.log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.addFilter(JsonExtraFilter())
        file_handler.setFormatter(JsonLineFormatter())
        self.logger.addHandler(file_handler)

    def _close_handlers(self):
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

    def shutdown(self):
        """Flush and detach all handlers."""
        self._close_handlers()
