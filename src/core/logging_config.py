"""Structured logging configuration.

This module initializes structlog with a stable JSON event format.
Every pipeline stage logs snake_case events with triage fields.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from typing import Any

import structlog

from core.errors import MigratorConfigError

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
_CONFIGURE_LOCK = threading.Lock()


def configure_logging(level: str | None = None, force: bool = False) -> None:
    """Configure structlog once per process.

    Entry points call this before doing work. Later calls are no-ops
    unless ``force`` is set.

    Args:
        level: Optional level name; defaults to MIGRATOR_LOG_LEVEL or info.
        force: Reconfigure even when logging is already configured.

    Raises:
        MigratorConfigError: If the level is not a known level name.
    """
    with _CONFIGURE_LOCK:
        if structlog.is_configured() and not force:
            return
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(sort_keys=True),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
            logger_factory=_StderrLogger,
            cache_logger_on_first_use=False,
        )


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    The logger resolves the active configuration on every event, so
    module-level loggers follow a later ``configure_logging`` call.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A lazy structlog logger whose events carry ``name``.
    """
    return structlog.get_logger(name)


class _StderrLogger(structlog.PrintLogger):
    """Print logger bound to the current stderr and carrying a name."""

    def __init__(self, name: str = "") -> None:
        super().__init__(sys.stderr)
        self.name = name


def _resolve_level(level: str | None) -> int:
    raw_level = (level or os.getenv("MIGRATOR_LOG_LEVEL", "info")).strip().lower()
    if raw_level not in _LOG_LEVELS:
        raise MigratorConfigError(
            f"Invalid MIGRATOR_LOG_LEVEL value '{raw_level}'. "
            f"Use one of: {', '.join(_LOG_LEVELS)}."
        )
    return _LOG_LEVELS[raw_level]
