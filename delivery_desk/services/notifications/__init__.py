"""
Notification Sink Factory

Returns the in-memory or Redis notification sink based on ENV_MODE.
"""

import logging
from functools import lru_cache

from delivery_desk.core.config import get_settings
from delivery_desk.services.notifications.base import (
    BaseNotificationSink,
    Notice,
    NoticeLevel,
)
from delivery_desk.services.notifications.memory import MemoryNotificationSink
from delivery_desk.services.notifications.redis_sink import RedisNotificationSink

logger = logging.getLogger(__name__)


@lru_cache()
def get_notification_sink() -> BaseNotificationSink:
    """Get the configured notification sink."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Notification Sink: Using MemoryNotificationSink (development mode)")
        return MemoryNotificationSink(history=settings.notices_history)
    else:
        logger.info(f"Notification Sink: Using RedisNotificationSink ({settings.env_mode.value} mode)")
        return RedisNotificationSink()


def reset_notification_sink() -> None:
    """Clear the cached sink instance."""
    get_notification_sink.cache_clear()


__all__ = [
    "get_notification_sink",
    "reset_notification_sink",
    "BaseNotificationSink",
    "Notice",
    "NoticeLevel",
    "MemoryNotificationSink",
    "RedisNotificationSink",
]
