"""Transient user notifications (toasts) raised by the engine."""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol

import structlog

logger = structlog.get_logger()


class NoticeLevel(StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notifier(Protocol):
    """Receives short messages the frontend shows to the user."""

    def __call__(self, level: NoticeLevel, message: str) -> None: ...


class LogNotifier:
    """Default notifier: writes notices to the structured log."""

    def __call__(self, level: NoticeLevel, message: str) -> None:
        if level == NoticeLevel.ERROR:
            logger.error("user_notice", level=str(level), message=message)
        elif level == NoticeLevel.WARNING:
            logger.warning("user_notice", level=str(level), message=message)
        else:
            logger.info("user_notice", level=str(level), message=message)
