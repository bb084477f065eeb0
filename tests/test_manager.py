import pytest

from delivery_desk.delivery import Cart, DeliveryManager
from delivery_desk.schemas import ExtractedItem, ExtractedOrder, OrderStatus, Platform, SortMode, UrgencyLevel
from delivery_desk.services.notifications.base import NoticeLevel
from delivery_desk.services.orders.memory import DEMO_MENU, InMemoryOrderStore


class CountingStore(InMemoryOrderStore):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.add_calls = 0

    async def add_order(self, order):
        self.add_calls += 1
        return await super().add_order(order)


def last_notice(notifier):
    return notifier.recent()[-1]


@pytest.fixture
async def started(manager):
    await manager.start()
    return manager


async def test_start_loads_menu_and_active_orders(store, manager, make_order):
    await store.add_order(make_order(delivery_time="14:30"))
    await store.add_order(make_order(status=OrderStatus.DELIVERED))
    await store.add_order(make_order(display_tag="7", platform=None))

    await manager.start()

    assert len(manager.menu) == len(DEMO_MENU)
    assert len(manager.orders) == 1


async def test_create_order_from_cart(started, notifier, menu):
    started.cart.platform = Platform.JUST_EAT
    started.cart.external_reference = "JE1234"
    started.cart.requested_time = "14:10"
    started.cart.add_item(menu["pizza_margherita"], 2)
    started.cart.add_item(menu["coca_cola"])

    result = await started.create_order()

    assert result.success
    order = result.order
    assert order.display_tag == "DEL_JUST-EAT_JE1234"
    assert order.status is OrderStatus.PENDING
    assert len(order.items) == 2
    assert order.total == 19.0
    assert started.cart.is_empty
    assert started.cart.platform is Platform.JUST_EAT
    assert [o.id for o in started.orders] == [order.id]
    assert last_notice(notifier).level is NoticeLevel.SUCCESS
    assert last_notice(notifier).message == "Order Just Eat #JE1234 created"


async def test_empty_cart_never_reaches_the_store(extraction, notifier, clock):
    store = CountingStore(menu=DEMO_MENU)
    manager = DeliveryManager(store, extraction, notifier, clock=clock)

    result = await manager.create_order()

    assert not result.success
    assert result.error_code == "empty_cart"
    assert store.add_calls == 0
    assert last_notice(notifier).level is NoticeLevel.ERROR


async def test_store_failure_keeps_the_cart(extraction, notifier, menu, clock):
    store = InMemoryOrderStore(menu=DEMO_MENU, failure_rate=1.0)
    manager = DeliveryManager(store, extraction, notifier, clock=clock)
    manager.cart.customer_name = "Sara"
    manager.cart.add_item(menu["lasagna"])

    result = await manager.create_order()

    assert not result.success
    assert result.error_code == "persistence_error"
    assert len(manager.cart.lines) == 1
    assert manager.cart.customer_name == "Sara"
    assert manager.orders == []
    assert last_notice(notifier).message.startswith("Error: ")
    assert not manager.is_creating


async def test_create_with_explicit_cart_leaves_staging_cart_alone(started, menu):
    started.cart.add_item(menu["bruschetta"])
    cart = Cart(platform=Platform.TAKEAWAY)
    cart.add_item(menu["tiramisu"])

    result = await started.create_order(cart)

    assert result.order.display_tag == "ASP_TAKEAWAY_1400"
    assert cart.is_empty
    assert len(started.cart.lines) == 1


async def test_advance_walks_the_whole_lifecycle(started, store, archived, menu):
    started.cart.add_item(menu["carbonara"])
    order = (await started.create_order()).order

    for status in (OrderStatus.IN_PREPARATION, OrderStatus.READY):
        result = await started.advance(order.id, status)
        assert result.success
        assert started.get_order(order.id).status is status

    result = await started.advance(order.id, OrderStatus.DELIVERED)

    assert result.success
    assert started.get_order(order.id) is None
    assert [o.id for o in archived] == [order.id]
    # Delivered orders leave the board but stay in the store
    stored = {o.id: o for o in await store.get_orders()}
    assert stored[order.id].status is OrderStatus.DELIVERED


async def test_advance_rejects_skipping_a_step(started, store, menu):
    started.cart.add_item(menu["carbonara"])
    order = (await started.create_order()).order

    result = await started.advance(order.id, OrderStatus.DELIVERED)

    assert not result.success
    assert result.error_code == "invalid_transition"
    assert started.get_order(order.id).status is OrderStatus.PENDING
    assert (await store.get_orders())[0].status is OrderStatus.PENDING


async def test_advance_unknown_order(started, notifier):
    result = await started.advance("delivery_0_missing", OrderStatus.IN_PREPARATION)

    assert not result.success
    assert result.error_code == "order_not_found"
    assert last_notice(notifier).level is NoticeLevel.ERROR


async def test_advance_sees_orders_written_by_another_client(started, store, make_order):
    foreign = make_order()
    await store.add_order(foreign)

    result = await started.advance(foreign.id, OrderStatus.IN_PREPARATION)

    assert result.success


async def test_archiver_failure_does_not_fail_the_command(store, extraction, notifier, menu, clock):
    async def broken_archiver(order):
        raise RuntimeError("disk full")

    manager = DeliveryManager(store, extraction, notifier, archiver=broken_archiver, clock=clock)
    await manager.start()
    manager.cart.add_item(menu["acqua"])
    order = (await manager.create_order()).order

    for status in (OrderStatus.IN_PREPARATION, OrderStatus.READY, OrderStatus.DELIVERED):
        assert (await manager.advance(order.id, status)).success


async def test_remove_requires_confirmation(started, store, notifier, make_order):
    order = make_order()
    await store.add_order(order)

    result = await started.remove(order.id)

    assert not result.success
    assert result.error_code == "confirmation_required"
    assert last_notice(notifier).level is NoticeLevel.ERROR
    assert last_notice(notifier).message == f"Deleting order {order.id} requires confirmation"
    assert started.get_order(order.id) is not None
    assert len(await store.get_orders()) == 1


async def test_remove_is_idempotent(started, store, make_order):
    first = make_order()
    second = make_order()
    await store.add_order(first)
    await store.add_order(second)

    assert (await started.remove(first.id, confirmed=True)).success
    retry = await started.remove(first.id, confirmed=True)

    assert not retry.success
    assert retry.error_code == "order_not_found"
    assert [o.id for o in started.orders] == [second.id]


async def test_failed_refresh_keeps_previous_orders(started, store, make_order, monkeypatch):
    await store.add_order(make_order())
    assert len(started.orders) == 1

    async def broken_get_orders():
        raise ConnectionError("store offline")

    monkeypatch.setattr(store, "get_orders", broken_get_orders)
    orders = await started.refresh()

    assert len(orders) == 1


async def test_scan_receipt(started, notifier):
    result = await started.scan_receipt(b"\xff\xd8fake-jpeg")

    assert result.success
    assert len(result.extraction.items) == 3
    messages = [n.message for n in notifier.recent()]
    assert "Scanning receipt..." in messages
    assert messages[-1] == "Found 3 item(s)"
    assert not started.is_scanning


async def test_scan_failure_is_reported(started, notifier):
    result = await started.scan_receipt(b"")

    assert not result.success
    assert result.error_code == "extraction_error"
    assert last_notice(notifier).level is NoticeLevel.ERROR


async def test_create_order_from_scan(started):
    extraction = ExtractedOrder(
        reference_id="GL-889",
        items=[
            ExtractedItem(name="Pizza Diavola", quantity=1, price=9.5),
            ExtractedItem(name="Supplì", quantity=3, price=2.0),
        ],
        requested_time="14:40",
    )

    result = await started.create_order_from_scan(extraction, Platform.GLOVO)

    assert result.success
    order = result.order
    assert order.id.startswith("scan_")
    assert order.display_tag == "DEL_GLOVO_GL-889"
    assert order.items[0].menu_item.id == "pizza_diavola"
    assert order.items[1].menu_item.name == "Supplì"
    assert order.items[1].menu_item.price == 2.0
    assert order.total == 15.5
    assert started.get_order(order.id) is not None


async def test_create_order_from_empty_scan(started, store):
    result = await started.create_order_from_scan(ExtractedOrder(), Platform.GLOVO)

    assert not result.success
    assert result.error_code == "empty_cart"
    assert await store.get_orders() == []


async def test_views(started, store, make_order):
    soon = make_order(display_tag="DEL_GLOVO_1", platform=Platform.GLOVO, delivery_time="14:05")
    later = make_order(delivery_time="15:30")
    asap = make_order(display_tag="ASP_PHONE_1", platform=Platform.PHONE)
    for order in (asap, later, soon):
        await store.add_order(order)

    views = started.list_view(sort_mode=SortMode.URGENCY)

    assert [v.order.id for v in views] == [soon.id, later.id, asap.id]
    assert views[0].urgency.level is UrgencyLevel.URGENT
    assert views[0].next_status is OrderStatus.IN_PREPARATION
    assert views[2].urgency is None
    assert views[2].fulfillment.value == "pickup"

    columns = started.columns()
    assert [v.order.id for v in columns[Platform.GLOVO]] == [soon.id]
    assert columns[Platform.DELIVEROO] == []
