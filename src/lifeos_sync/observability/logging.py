"""JSON-lines logging for the engine and the CLI.

Modules log through `get_logger(__name__)` and pass structured context as
``extra={"extra_fields": {...}}``; the formatter merges it into the entry.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

_RECORD_ATTRS = frozenset(
    logging.LogRecord("name", logging.INFO, "path", 1, "msg", None, None).__dict__
) | {"message", "asctime", "stack_info", "taskName"}


class JsonFormatter(logging.Formatter):
    """Renders each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "component": record.name,
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            if key == "extra_fields" and isinstance(value, dict):
                entry.update(value)
            else:
                entry[key] = value

        # Snapshots and enums in extras are stringified rather than dropped.
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, stream=None):
    """Installs the JSON handler on the root logger.

    Args:
        level: Log level name. Defaults to LOG_LEVEL, then INFO.
        stream: Output stream. Defaults to stderr, keeping stdout free for
            command output.
    """
    root = logging.getLogger()
    root.setLevel((level or os.environ.get("LOG_LEVEL", "INFO")).upper())

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())

    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
