"""
Redis Notification Sink

Publishes every notice as JSON on a Redis pub/sub channel so all open
dashboards show it. Used in staging and production.
"""

import json
import logging
from typing import Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from delivery_desk.core.config import get_settings
from delivery_desk.services.notifications.base import (
    BaseNotificationSink,
    Notice,
    NoticeLevel,
)

logger = logging.getLogger(__name__)


class RedisNotificationSink(BaseNotificationSink):
    """Notification sink publishing on a Redis channel."""

    def __init__(self, client: Optional[aioredis.Redis] = None, channel: Optional[str] = None):
        settings = get_settings()
        self._client = client or aioredis.from_url(settings.redis_url)
        self._channel = channel or settings.notices_channel
        logger.info(f"RedisNotificationSink initialized (channel={self._channel})")

    @property
    def provider_name(self) -> str:
        return "redis"

    async def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        notice = Notice(message=message, level=level)
        try:
            await self._client.publish(self._channel, json.dumps(notice.to_dict()))
            logger.debug(f"Notice published [{level.value}]: {message}")
        except RedisError as e:
            # Notices are best-effort; losing one must not fail the order command
            logger.error(f"Failed to publish notice '{message}': {e}")
        return notice

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis notification sink health check failed: {e}")
            return False
