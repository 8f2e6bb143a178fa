"""Structured logging helpers built on structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def setup_logging(*, debug: bool = False, json: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_dispatch_context(
    *,
    command: str,
    sender_id: int,
    channel_id: int,
    guild_id: int | None = None,
) -> None:
    structlog.contextvars.bind_contextvars(
        command=command,
        sender_id=sender_id,
        channel_id=channel_id,
        guild_id=guild_id,
    )


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
