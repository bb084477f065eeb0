"""
Notification Sink Abstract Base Class

Defines the interface for the transient, user-facing notices the delivery
desk emits (order created, status error, scan failed...). Notices are
fire-and-forget: a sink never raises into the caller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass
class Notice:
    """A single user-facing notice."""
    message: str
    level: NoticeLevel = NoticeLevel.INFO
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "message": self.message,
            "level": self.level.value,
            "created_at": self.created_at.isoformat(),
        }


class BaseNotificationSink(ABC):
    """Abstract base class for notification sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    async def notify(self, message: str, level: NoticeLevel = NoticeLevel.INFO) -> Notice:
        """Emit a notice."""
        pass

    async def success(self, message: str) -> Notice:
        return await self.notify(message, NoticeLevel.SUCCESS)

    async def error(self, message: str) -> Notice:
        return await self.notify(message, NoticeLevel.ERROR)

    async def info(self, message: str) -> Notice:
        return await self.notify(message, NoticeLevel.INFO)

    def recent(self) -> list[Notice]:
        """Most recent notices, newest last; sinks that keep no history return nothing."""
        return []

    @abstractmethod
    async def health_check(self) -> bool:
        """Check service connectivity."""
        pass
