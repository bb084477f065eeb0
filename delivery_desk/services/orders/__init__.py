"""
Order Store Factory

Provides a single entry point for obtaining the order store.

Environment Switching:
    - ENV_MODE=development → InMemoryOrderStore seeded with the demo menu
    - ENV_MODE=staging/production → SqlOrderStore on PostgreSQL
"""

import logging
from functools import lru_cache

from delivery_desk.core.config import get_settings
from delivery_desk.database import get_session_maker
from delivery_desk.services.orders.base import (
    BaseOrderStore,
    ChangeKind,
    ChangeListener,
    OrderChange,
)
from delivery_desk.services.orders.memory import DEMO_MENU, InMemoryOrderStore
from delivery_desk.services.orders.sql import SqlOrderStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_order_store() -> BaseOrderStore:
    """
    Get the configured order store instance.

    The instance is cached so every part of the application shares the
    same store and the same change subscribers.
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Order Store: Using InMemoryOrderStore (development mode)")
        return InMemoryOrderStore(menu=DEMO_MENU, min_latency=0.05, max_latency=0.2)
    else:
        logger.info(f"Order Store: Using SqlOrderStore ({settings.env_mode.value} mode)")
        return SqlOrderStore(get_session_maker(), poll_interval=settings.order_poll_interval)


def reset_order_store() -> None:
    """Clear the cached store instance."""
    get_order_store.cache_clear()
    logger.debug("Order store cache cleared")


__all__ = [
    "get_order_store",
    "reset_order_store",
    "BaseOrderStore",
    "ChangeKind",
    "ChangeListener",
    "OrderChange",
    "InMemoryOrderStore",
    "SqlOrderStore",
    "DEMO_MENU",
]
