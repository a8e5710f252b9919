"""
Structured logging configuration using structlog wrapping stdlib.

Modules keep using ``logging.getLogger(__name__)``; this routes every stdlib
record through structlog so push delivery logs come out as key/value console
lines in development and JSON lines on the server.

Usage:
    from irshad.logging_config import setup_logging
    setup_logging()
"""

from __future__ import annotations

import logging
import os
import sys

import structlog


# Third-party loggers that are chatty at INFO during a fan-out
QUIET_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("IRSHAD_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("IRSHAD_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def short_endpoint(endpoint: str, length: int = 50) -> str:
    """Truncate a push endpoint for log lines (the tail is a per-device secret)."""
    if len(endpoint) <= length:
        return endpoint
    return endpoint[:length] + "..."


__all__ = ["setup_logging", "short_endpoint"]
