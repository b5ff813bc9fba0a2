"""Structured logging setup for the demo server."""

from __future__ import annotations

import logging
from typing import Any, Iterable, List

import structlog


SERVICE_NAME = "data-fetching-demo"


def add_service(_: Any, __: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def build_processors(json_output: bool = True) -> List[Any]:
    """Processor chain shared by the server and the ``fetching`` package loggers."""

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    level: str | int = logging.INFO,
    *,
    json_output: bool = True,
    handlers: Iterable[logging.Handler] | None = None,
) -> None:
    """Route stdlib logging and structlog through one handler set.

    Existing root handlers are left alone, so calling this under a host that
    already configured logging only adjusts the level and the structlog chain.
    """

    if handlers is None:
        handlers = [logging.StreamHandler()]

    logging.basicConfig(handlers=list(handlers), format="%(message)s")
    logging.getLogger().setLevel(level.upper() if isinstance(level, str) else level)

    structlog.configure(
        processors=build_processors(json_output),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
