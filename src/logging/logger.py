# src/logging/logger.py - v3
"""Formatters and setup for the "imagecomposer" logger tree.

Every record carries the request context (request_id, user_id, call) so
the primary call and each fan-out call of one request can be told apart.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from imagecomposer.logging.context import get_context

if TYPE_CHECKING:
    from imagecomposer.config.settings import Settings

ROOT_LOGGER = "imagecomposer"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; context fields are flattened into it."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **get_context().as_dict(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter: `time [LEVEL] logger [request] (call) - message`."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        line = f"{datetime.now(timezone.utc):%Y-%m-%d %H:%M:%S} [{record.levelname:8s}] {record.name}"
        if ctx.request_id:
            line += f" [{ctx.request_id}]"
        if ctx.call:
            line += f" ({ctx.call})"
        line += f" - {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.Logger:
    """(Re)configure the package logger: stderr, plus a rotated file when log_file is set."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from imagecomposer.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    return root


def configure_from_settings(settings: Settings, level: str | None = None) -> logging.Logger:
    """Apply the LOG_* settings; level overrides LOG_LEVEL when given."""
    return setup_logging(
        level=level or settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )
