"""
In-Memory Order Store

Keeps orders and the menu in process memory. Used in development mode
(ENV_MODE=development) and by the test-suite.

Behavior:
    - Orders are returned as copies, so callers cannot mutate stored state
    - Optional simulated latency and write failure rate for exercising
      the manager's error paths
"""

import asyncio
import random
import time
import logging
from typing import Iterable, Optional

from delivery_desk.core.exceptions import OrderNotFoundError, PersistenceError
from delivery_desk.schemas import Category, MenuItem, Order, OrderStatus
from delivery_desk.services.orders.base import BaseOrderStore, ChangeKind, OrderChange

logger = logging.getLogger(__name__)


DEMO_MENU = [
    MenuItem(id="pizza_margherita", name="Pizza Margherita", price=8.0, category=Category.PIZZAS),
    MenuItem(id="pizza_diavola", name="Pizza Diavola", price=9.5, category=Category.PIZZAS),
    MenuItem(id="pizza_capricciosa", name="Pizza Capricciosa", price=10.0, category=Category.PIZZAS),
    MenuItem(id="carbonara", name="Spaghetti Carbonara", price=11.0, category=Category.FIRST_COURSES),
    MenuItem(id="lasagna", name="Lasagna alla Bolognese", price=12.0, category=Category.FIRST_COURSES),
    MenuItem(id="cotoletta", name="Cotoletta alla Milanese", price=14.0, category=Category.MAIN_COURSES),
    MenuItem(id="bruschetta", name="Bruschetta", price=5.0, category=Category.STARTERS),
    MenuItem(id="panino_porchetta", name="Panino Porchetta", price=7.5, category=Category.SANDWICHES),
    MenuItem(id="tiramisu", name="Tiramisu", price=6.0, category=Category.DESSERTS),
    MenuItem(id="coca_cola", name="Coca-Cola", price=3.0, category=Category.DRINKS),
    MenuItem(id="acqua", name="Acqua Naturale", price=1.5, category=Category.DRINKS),
]


class InMemoryOrderStore(BaseOrderStore):
    """
    Order store backed by plain dictionaries.

    Attributes:
        failure_rate: Probability that a write fails (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> store = InMemoryOrderStore(menu=DEMO_MENU)
        >>> await store.add_order(order)
    """

    def __init__(
        self,
        menu: Optional[Iterable[MenuItem]] = None,
        orders: Optional[Iterable[Order]] = None,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        super().__init__()
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self._menu: dict[str, MenuItem] = {item.id: item for item in (menu or [])}
        self._orders: dict[str, Order] = {order.id: order for order in (orders or [])}

        logger.info(
            f"InMemoryOrderStore initialized "
            f"(menu_items={len(self._menu)}, failure_rate={failure_rate:.0%})"
        )

    @property
    def provider_name(self) -> str:
        return "memory"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _check_failure(self, operation: str) -> None:
        if self.failure_rate and random.random() < self.failure_rate:
            logger.warning(f"Simulated store failure on {operation}")
            raise PersistenceError(f"Simulated store failure on {operation}")

    async def get_orders(self) -> list[Order]:
        await self._simulate_latency()
        return [order.model_copy(deep=True) for order in self._orders.values()]

    async def add_order(self, order: Order) -> Order:
        await self._simulate_latency()
        self._check_failure("add_order")

        stored = order.model_copy(deep=True)
        self._orders[stored.id] = stored
        logger.info(f"Order {stored.id} stored ({stored.display_tag})")

        await self._emit(OrderChange(ChangeKind.ORDER_ADDED, stored.id))
        return stored.model_copy(deep=True)

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        await self._simulate_latency()
        self._check_failure("update_order_status")

        if order_id not in self._orders:
            raise OrderNotFoundError(order_id)

        current = self._orders[order_id]
        updated = current.model_copy(update={"status": status, "updated_at": int(time.time() * 1000)})
        self._orders[order_id] = updated
        logger.info(f"Order {order_id}: {current.status.value} -> {status.value}")

        await self._emit(OrderChange(ChangeKind.ORDER_UPDATED, order_id))
        return updated.model_copy(deep=True)

    async def delete_order(self, order_id: str) -> None:
        await self._simulate_latency()
        self._check_failure("delete_order")

        if order_id not in self._orders:
            raise OrderNotFoundError(order_id)

        del self._orders[order_id]
        logger.info(f"Order {order_id} deleted")

        await self._emit(OrderChange(ChangeKind.ORDER_DELETED, order_id))

    async def get_menu_items(self) -> list[MenuItem]:
        return list(self._menu.values())

    async def add_menu_item(self, item: MenuItem) -> MenuItem:
        self._menu[item.id] = item
        await self._emit(OrderChange(ChangeKind.MENU_UPDATED))
        return item

    async def health_check(self) -> bool:
        return True
