"""Structured logging configuration.

JSON output for production, colored console for development/testing.
Call configure_logging() once at application startup, before the first
course is loaded. Sessions bind their learner/course ids with
course_context() so every event logged underneath (API requests
included) carries them.
"""

import logging
import re
import sys
from collections.abc import Mapping
from contextlib import AbstractContextManager
from typing import Any

import structlog

from course_sequencer.config import settings

SENSITIVE_KEYS: frozenset[str] = frozenset(
    {"api_token", "password", "secret", "token", "authorization"}
)

REDACTED = "***REDACTED***"

# Bearer credentials inside free text (httpx error messages, header dumps)
_BEARER = re.compile(r"(?i)\b(bearer\s+)[^\s,;'\"}]+")


def _scrub(value: Any) -> Any:
    if isinstance(value, str):
        return _BEARER.sub(rf"\g<1>{REDACTED}", value)
    if isinstance(value, Mapping):
        return {
            k: REDACTED if str(k).lower() in SENSITIVE_KEYS else _scrub(v)
            for k, v in value.items()
        }
    return value


def _redact_sensitive_keys(
    logger: logging.Logger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Redact sensitive keys and bearer tokens in log events.

    Nested mappings such as request headers are redacted too.
    """
    for key, value in event_dict.items():
        if key.lower() in SENSITIVE_KEYS:
            event_dict[key] = REDACTED
        else:
            event_dict[key] = _scrub(value)
    return event_dict


def course_context(
    course_id: str, learner_id: str | None = None
) -> AbstractContextManager[Mapping[str, Any]]:
    """Bind course (and learner) ids to every event logged in the block."""
    ids = {"course_id": course_id}
    if learner_id is not None:
        ids["learner_id"] = learner_id
    return structlog.contextvars.bound_contextvars(**ids)


def configure_logging(
    environment: str | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structlog processor chain and stdlib root logger.

    Records from stdlib loggers (httpx, httpcore) go through the same
    chain, so they are redacted and carry the bound course context.

    Args:
        environment: 'production' for JSON output, anything else
            for colored console output. Defaults to settings.
        log_level: Python log level name (DEBUG, INFO, WARNING, etc.).
            Defaults to settings.
    """
    environment = str(settings.environment) if environment is None else environment
    log_level = settings.log_level if log_level is None else log_level

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _redact_sensitive_keys,
    ]

    if environment == "production":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

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

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    # Request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
