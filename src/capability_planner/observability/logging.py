"""Structured JSON logging for planner events.

Every record becomes one JSON line on stderr. Events emitted through
`log_event` carry their name under "event" plus arbitrary fields, so state
transitions, parse failures and step outcomes can be filtered by key.
"""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Any, Optional

# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(
    logging.makeLogRecord({}).__dict__
) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """Renders a record, its exception and its extra fields as a JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key == "extra_fields" and isinstance(value, dict):
                payload.update(value)
            elif key not in _RECORD_ATTRS:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = self.formatStack(record.stack_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


def setup_logging(level: Optional[str] = None) -> None:
    """Routes all logging through a single stderr handler using JsonFormatter.

    Args:
        level: Log level name; falls back to LOG_LEVEL, then INFO.
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "json",
                }
            },
            "root": {
                "level": (level or os.environ.get("LOG_LEVEL", "INFO")).upper(),
                "handlers": ["stderr"],
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    event: str,
    level: int = logging.INFO,
    **fields: Any,
) -> None:
    """Emits `event` as the message with its fields bundled under 'extra_fields'."""
    logger.log(level, event, extra={"extra_fields": {"event": event, **fields}})
