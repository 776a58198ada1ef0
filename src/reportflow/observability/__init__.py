"""Observability helpers."""

from __future__ import annotations

from reportflow.observability.logging import (
    ConsoleFormatter,
    ContextFilter,
    JSONFormatter,
    configure_logging,
    get_log_context,
    log_context,
)

__all__ = [
    "ConsoleFormatter",
    "ContextFilter",
    "JSONFormatter",
    "configure_logging",
    "get_log_context",
    "log_context",
]
