import itertools
from datetime import datetime
from typing import Optional

import pytest

from delivery_desk.delivery import DeliveryManager
from delivery_desk.schemas import Order, OrderItem, OrderStatus, Platform
from delivery_desk.services.extraction.mock import MockExtractionService
from delivery_desk.services.notifications.memory import MemoryNotificationSink
from delivery_desk.services.orders.memory import DEMO_MENU, InMemoryOrderStore

FIXED_NOW = datetime(2024, 5, 17, 14, 0)

MENU = {item.id: item for item in DEMO_MENU}


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def menu():
    return MENU


@pytest.fixture
def store():
    return InMemoryOrderStore(menu=DEMO_MENU)


@pytest.fixture
def notifier():
    return MemoryNotificationSink()


@pytest.fixture
def extraction():
    return MockExtractionService(failure_rate=0.0, min_latency=0.0, max_latency=0.0)


@pytest.fixture
def archived():
    return []


@pytest.fixture
def archiver(archived):
    async def _archive(order):
        archived.append(order)

    return _archive


@pytest.fixture
def manager(store, extraction, notifier, archiver, clock):
    return DeliveryManager(
        store=store,
        extraction_service=extraction,
        notifier=notifier,
        archiver=archiver,
        clock=clock,
    )


@pytest.fixture
def make_order():
    """Factory for orders as they would sit in the store."""
    counter = itertools.count(1)

    def _make(
        display_tag: str = "DEL_JUST-EAT_1234",
        platform: Optional[Platform] = Platform.JUST_EAT,
        status: OrderStatus = OrderStatus.PENDING,
        delivery_time: Optional[str] = None,
        notes: Optional[str] = None,
        created_at: Optional[int] = None,
        items: Optional[list[OrderItem]] = None,
    ) -> Order:
        n = next(counter)
        created = created_at if created_at is not None else 1_700_000_000_000 + n
        return Order(
            id=f"delivery_{created}_{n:06d}",
            display_tag=display_tag,
            items=items if items is not None else [OrderItem(menu_item=MENU["pizza_margherita"], quantity=1)],
            status=status,
            created_at=created,
            updated_at=created,
            platform=platform,
            delivery_time=delivery_time,
            notes=notes,
        )

    return _make
