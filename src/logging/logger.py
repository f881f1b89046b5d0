# src/logging/logger.py - v3
"""Logger factory and the two output formats (json, text).

Every record is enriched with the active run context from logging.context.
Log lines go to stderr; stdout belongs to the CLI's command output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from visiontester.logging.context import get_context

ROOT_LOGGER = "visiontester"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JsonFormatter(logging.Formatter):
    """Emit each record as a single-line JSON document."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": _now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            payload["context"] = context

        # structured extras: logger.info("...", extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            payload["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """``2026-01-01 10:00:00 [INFO    ] visiontester.x [run] (step) - msg``"""

    def format(self, record: logging.LogRecord) -> str:
        context = get_context()
        head = f"{_now():%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        if context.run_id:
            head += f" [{context.run_id}]"
        if context.step:
            head += f" ({context.step})"

        text = f"{head} - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            text += "\n" + self.formatException(record.exc_info)
        return text


_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "json": JsonFormatter,
    "text": TextFormatter,
}


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 5,
) -> None:
    """(Re)configure the ``visiontester`` logger tree.

    Calling it again replaces the handlers installed by the previous call.
    An unknown ``log_format`` falls back to text, an unknown level to INFO.
    ``rotation`` and ``retention`` only apply when ``log_file`` is given.
    """
    root = logging.getLogger(ROOT_LOGGER)
    level_no = logging.getLevelName(level.upper())
    root.setLevel(level_no if isinstance(level_no, int) else logging.INFO)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = _FORMATTERS.get(log_format, TextFormatter)()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from visiontester.logging.handlers import create_rotating_handler

        handlers.append(
            create_rotating_handler(log_file, rotation=rotation, retention=retention)
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
