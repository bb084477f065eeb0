import asyncio

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from delivery_desk.core.exceptions import OrderNotFoundError
from delivery_desk.database import init_db
from delivery_desk.delivery import DeliveryManager
from delivery_desk.schemas import OrderStatus, Platform
from delivery_desk.services.orders.base import ChangeKind
from delivery_desk.services.orders.memory import DEMO_MENU
from delivery_desk.services.orders.sql import SqlOrderStore


@pytest.fixture
async def sql_store():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(engine)
    session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    store = SqlOrderStore(session_maker)
    for item in DEMO_MENU:
        await store.add_menu_item(item)

    yield store

    await engine.dispose()


@pytest.fixture
async def shared_db(tmp_path):
    """Two engines on one database file, as two processes would see it."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}"
    engines = [create_async_engine(url), create_async_engine(url)]
    await init_db(engines[0])

    yield [async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False) for engine in engines]

    for engine in engines:
        await engine.dispose()


async def test_orders_round_trip(sql_store, make_order):
    order = make_order(delivery_time="20:30", notes="Orario: 20:30")

    await sql_store.add_order(order)
    stored = await sql_store.get_orders()

    assert [o.model_dump() for o in stored] == [order.model_dump()]


async def test_orders_come_back_most_recent_first(sql_store, make_order):
    older = make_order(created_at=1_000)
    newer = make_order(created_at=2_000)
    await sql_store.add_order(older)
    await sql_store.add_order(newer)

    assert [o.id for o in await sql_store.get_orders()] == [newer.id, older.id]


async def test_update_status(sql_store, make_order):
    order = make_order()
    await sql_store.add_order(order)

    updated = await sql_store.update_order_status(order.id, OrderStatus.IN_PREPARATION)

    assert updated.status is OrderStatus.IN_PREPARATION
    assert updated.updated_at >= order.updated_at
    assert (await sql_store.get_orders())[0].status is OrderStatus.IN_PREPARATION


async def test_missing_orders_raise_not_found(sql_store):
    with pytest.raises(OrderNotFoundError):
        await sql_store.update_order_status("nope", OrderStatus.READY)
    with pytest.raises(OrderNotFoundError):
        await sql_store.delete_order("nope")


async def test_delete_and_change_notifications(sql_store, make_order):
    changes = []

    async def listener(change):
        changes.append(change)

    sql_store.subscribe(listener)
    order = make_order()
    await sql_store.add_order(order)
    await sql_store.delete_order(order.id)

    assert await sql_store.get_orders() == []
    assert [c.kind for c in changes] == [ChangeKind.ORDER_ADDED, ChangeKind.ORDER_DELETED]


async def test_dine_in_source_is_not_a_platform(sql_store, make_order):
    await sql_store.add_order(make_order(display_tag="5", platform=None))
    await sql_store.add_order(make_order(display_tag="DEL_GLOVO_1", platform=Platform.GLOVO))

    platforms = {o.display_tag: o.platform for o in await sql_store.get_orders()}

    assert platforms == {"5": None, "DEL_GLOVO_1": Platform.GLOVO}


async def test_menu_and_health(sql_store):
    menu = await sql_store.get_menu_items()

    assert {item.id for item in menu} == {item.id for item in DEMO_MENU}
    assert await sql_store.health_check()


async def test_manager_follows_writes_from_another_process(shared_db, make_order, extraction, notifier, clock):
    ours, theirs = SqlOrderStore(shared_db[0]), SqlOrderStore(shared_db[1])
    manager = DeliveryManager(ours, extraction, notifier, clock=clock)
    await manager.start()

    order = make_order(delivery_time="14:30")
    await theirs.add_order(order)
    assert manager.orders == []

    assert await ours.poll_changes()
    assert [o.id for o in manager.orders] == [order.id]

    await theirs.update_order_status(order.id, OrderStatus.IN_PREPARATION)
    assert await ours.poll_changes()
    assert manager.get_order(order.id).status is OrderStatus.IN_PREPARATION

    await theirs.delete_order(order.id)
    assert await ours.poll_changes()
    assert manager.orders == []

    assert not await ours.poll_changes()
    await manager.stop()


async def test_watching_polls_in_the_background(shared_db, make_order):
    store = SqlOrderStore(shared_db[0], poll_interval=0.01)
    changes = []

    async def listener(change):
        changes.append(change.kind)

    store.subscribe(listener)
    await store.start_watching()
    await SqlOrderStore(shared_db[1]).add_order(make_order())

    for _ in range(200):
        if changes:
            break
        await asyncio.sleep(0.01)
    await store.stop_watching()

    assert changes[0] is ChangeKind.ORDERS_CHANGED
