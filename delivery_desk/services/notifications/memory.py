"""
In-Memory Notification Sink

Keeps the latest notices in a bounded buffer and logs each one. Used in
development mode, where the dashboard polls ``/api/delivery/notices``.
"""

import logging
from collections import deque

from delivery_desk.services.notifications.base import (
    BaseNotificationSink,
    Notice,
    NoticeLevel,
)

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    NoticeLevel.SUCCESS: logging.INFO,
    NoticeLevel.INFO: logging.INFO,
    NoticeLevel.ERROR: logging.WARNING,
}


class MemoryNotificationSink(BaseNotificationSink):
    """Notification sink with a bounded in-memory history."""

    def __init__(self, history: int = 50):
        self._notices: deque[Notice] = deque(maxlen=history)

    @property
    def provider_name(self) -> str:
        return "memory"

    async def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        notice = Notice(message=message, level=level)
        self._notices.append(notice)
        logger.log(_LOG_LEVELS[level], f"Notice [{level.value}]: {message}")
        return notice

    def recent(self) -> list[Notice]:
        return list(self._notices)

    async def health_check(self) -> bool:
        return True
