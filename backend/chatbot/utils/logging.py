"""Structured JSON logging.

Call sites attach context with ``extra={"structured": {...}}``; the formatter
flattens it into the emitted JSON object.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any


class JSONFormatter(logging.Formatter):
    """Formatter that serializes records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        structured = getattr(record, "structured", None)
        if isinstance(structured, dict):
            payload.update(structured)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def resolve_log_level(value: str | int | None, *, default: int = logging.INFO) -> int:
    """Convert a configured level name to its numeric constant."""
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        level = logging.getLevelName(value.strip().upper())
        if isinstance(level, int):
            return level
    return default


def configure_logging(level: str | int = logging.INFO, *, json_output: bool = True) -> None:
    """Install a single stream handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(resolve_log_level(level))
    root_logger.handlers.clear()

    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    root_logger.addHandler(handler)
