"""
Order Store Abstract Base Class

Defines the interface contract for every place orders are persisted.
Both InMemoryOrderStore and SqlOrderStore implement these methods, so the
delivery manager works identically whichever store is active.

Besides CRUD, a store pushes an OrderChange to its subscribers after every
successful write. That is the channel the delivery manager listens on to
keep its cached board fresh. Stores shared with other processes also watch
for writes they did not make themselves (see ``start_watching``).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from delivery_desk.schemas import MenuItem, Order, OrderStatus

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    ORDER_ADDED = "order_added"
    ORDER_UPDATED = "order_updated"
    ORDER_DELETED = "order_deleted"
    MENU_UPDATED = "menu_updated"
    ORDERS_CHANGED = "orders_changed"


@dataclass
class OrderChange:
    """A write that just happened in the store."""
    kind: ChangeKind
    order_id: Optional[str] = None


ChangeListener = Callable[[OrderChange], Awaitable[None]]


class BaseOrderStore(ABC):
    """
    Abstract base class for order stores.

    Example:
        >>> store = get_order_store()
        >>> await store.add_order(order)
        >>> orders = await store.get_orders()
    """

    def __init__(self):
        self._listeners: list[ChangeListener] = []

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the store name (e.g. "memory", "sql")."""
        pass

    @abstractmethod
    async def get_orders(self) -> list[Order]:
        """Full current snapshot of every order, no pagination."""
        pass

    @abstractmethod
    async def add_order(self, order: Order) -> Order:
        """
        Persist a new order.

        Returns:
            Order: The order as stored

        Raises:
            PersistenceError: If the order cannot be written
        """
        pass

    @abstractmethod
    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        """
        Change an order's status.

        Raises:
            OrderNotFoundError: If no order has this id
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_order(self, order_id: str) -> None:
        """
        Delete an order permanently.

        Raises:
            OrderNotFoundError: If no order has this id
            PersistenceError: If the write fails
        """
        pass

    @abstractmethod
    async def get_menu_items(self) -> list[MenuItem]:
        """Full menu catalog."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check the store is reachable."""
        pass

    # =========================================================================
    # CHANGE NOTIFICATIONS
    # =========================================================================

    def subscribe(self, listener: ChangeListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def start_watching(self) -> None:
        """
        Start reporting writes made outside this store object.

        A store that sees every write itself has nothing to watch.
        """

    async def stop_watching(self) -> None:
        pass

    async def _emit(self, change: OrderChange) -> None:
        """Deliver a change to every subscriber; one failing listener does not stop the rest."""
        for listener in list(self._listeners):
            try:
                await listener(change)
            except Exception as e:
                logger.exception(f"Change listener failed on {change.kind.value}: {e}")
