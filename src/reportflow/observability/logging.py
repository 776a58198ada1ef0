"""Logging configuration for reportflow.

Modules log through the standard library (``logging.getLogger(__name__)``).
This module wires those records to console or JSON output and propagates
contextual fields such as ``job_id`` and ``plugin_id``:

    >>> configure_logging(level="INFO", format="json")
    >>> with log_context(job_id="42"):
    ...     logger.info("Starting job")  # record carries job_id=42

Context is stored in a :class:`contextvars.ContextVar`, so concurrent jobs
running as separate asyncio tasks never see each other's fields.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator, TextIO

_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "reportflow_log_context", default={}
)

_RESERVED = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "context"}


def get_log_context() -> dict[str, Any]:
    """Return a copy of the current context fields."""
    return dict(_context.get())


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Add fields to every record logged inside the block.

    Example:
        >>> with log_context(job_id="abc", plugin_id="acme.sales"):
        ...     logger.info("Generating")
    """
    token = _context.set({**_context.get(), **fields})
    try:
        yield
    finally:
        _context.reset(token)


class ContextFilter(logging.Filter):
    """Attach the current log context to each record as ``record.context``."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = get_log_context()
        return True


class ConsoleFormatter(logging.Formatter):
    """Human-readable single-line format with trailing ``key=value`` fields."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "context", None) or {}
        if fields:
            extras = " ".join(f"{k}={v}" for k, v in fields.items())
            line = f"{line} [{extras}]"
        return line


class JSONFormatter(logging.Formatter):
    """One JSON object per line, suitable for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        data.update(getattr(record, "context", None) or {})

        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                data[key] = value

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, default=str, ensure_ascii=False)


def configure_logging(
    *,
    level: int | str = logging.INFO,
    format: str = "console",
    stream: TextIO | None = None,
    logger_name: str = "reportflow",
) -> logging.Logger:
    """Configure the ``reportflow`` logger hierarchy.

    Calling this again replaces the handler installed by a previous call.

    Args:
        level: Log level name or number.
        format: ``"console"`` or ``"json"``.
        stream: Output stream (defaults to stderr).
        logger_name: Root of the hierarchy to configure.

    Returns:
        The configured logger.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if format == "json" else ConsoleFormatter())
    handler.addFilter(ContextFilter())
    handler.set_name("reportflow")

    root = logging.getLogger(logger_name)
    for existing in list(root.handlers):
        if existing.get_name() == "reportflow":
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
    return root
