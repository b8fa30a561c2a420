"""Structured logging setup for applications using gcslock."""

import logging
from typing import Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

from gcslock.config import get_settings


def configure_logging(level: int | str | None = None) -> None:
    """
    Route gcslock events through a JSON structlog pipeline.

    The library never calls this itself; applications opt in.

    Args:
        level: Log level name or number. Defaults to the current
            settings' log_level (GCSLOCK_LOG_LEVEL).
    """
    if level is None:
        level = get_settings().log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_log_context(**kwargs: Any) -> None:
    clean = {key: value for key, value in kwargs.items() if value is not None}
    if clean:
        bind_contextvars(**clean)


def clear_log_context() -> None:
    clear_contextvars()
