from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from logging.config import dictConfig
from typing import Any, Iterable

RUN_CONTEXT_KEYS = (
    "strategy",
    "engine",
    "record_count",
    "row_count",
    "failed_count",
    "start",
    "end",
    "path",
)

_configured = False


def _render(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class RunContextFormatter(logging.Formatter):
    """Appends ``key=value`` run context taken from a record's ``extra`` fields.

    Datetimes render as ISO-8601 and enums as their value, so callers can pass
    a ``DateRange`` bound or a ``TransferStrategy`` directly.
    """

    def __init__(self, fmt: str | None = None, datefmt: str | None = None, keys: Iterable[str] = RUN_CONTEXT_KEYS) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.keys = tuple(keys)

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        context = " ".join(
            f"{key}={_render(record.__dict__[key])}"
            for key in self.keys
            if record.__dict__.get(key) is not None
        )
        return f"{message} | {context}" if context else message


def configure_logging(level: str | int = "INFO") -> None:
    """Send run logs to stderr so stdout stays free for console output."""
    global _configured
    if _configured:
        return

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "run": {
                    "()": "logging_config.RunContextFormatter",
                    "fmt": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                }
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "run",
                }
            },
            "root": {"handlers": ["stderr"], "level": level},
        }
    )

    _configured = True
