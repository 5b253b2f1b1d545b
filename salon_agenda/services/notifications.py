from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Fire-and-forget channel for messages shown to the end user."""

    def notify(self, level: str, message: str) -> None: ...


class LoggingNotificationSink:
    def __init__(self, *, enabled: bool = True) -> None:
        self._enabled = enabled

    def notify(self, level: str, message: str) -> None:
        if not self._enabled:
            return
        log_level = logging.WARNING if level == "error" else logging.INFO
        logger.log(log_level, "[%s] %s", level, message)
