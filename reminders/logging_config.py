"""
Structured logging for reminder runs, using structlog over stdlib logging.

Every event carries the run context bound by the job and the dispatcher
(``run_at``, ``timezone``, ``batch``) through ``structlog.contextvars``, so
token-level events from reconciliation tasks can be traced back to the
batch that produced them. Push tokens are long and identify a device; they
are shortened before rendering.

Output is JSON when ``REMINDERS_LOG_FORMAT=json`` (scheduled runs) and
console text otherwise.

Usage:
    from reminders.logging_config import get_logger, setup_logging

    setup_logging()
    logger = get_logger(__name__)

    with structlog.contextvars.bound_contextvars(batch=3):
        logger.info("batch_sent", success=499, failures=1)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

TOKEN_FIELDS = ("token",)
TOKEN_HEAD = 8
TOKEN_TAIL = 4

# firebase-admin, grpc and the google HTTP stack log every request at INFO
SDK_LOGGERS = ("google", "grpc", "urllib3")


def shorten_tokens(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Render push tokens as ``head...tail``."""
    for key in TOKEN_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > TOKEN_HEAD + TOKEN_TAIL + 3:
            event_dict[key] = f"{value[:TOKEN_HEAD]}...{value[-TOKEN_TAIL:]}"
    return event_dict


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    if level is None:
        level = os.environ.get("REMINDERS_LOG_LEVEL", "INFO")
    if json_output is None:
        json_output = os.environ.get("REMINDERS_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            shorten_tokens,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in SDK_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["get_logger", "setup_logging", "shorten_tokens"]
