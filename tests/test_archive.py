import asyncio
import time
from datetime import datetime
from types import SimpleNamespace

import pytest

from delivery_desk import main, tasks
from delivery_desk.core.config import EnvironmentMode
from delivery_desk.schemas import OrderItem, OrderStatus, Platform
from delivery_desk.services.archive import DeliveryArchive, order_archive_row


@pytest.fixture
def archive(tmp_path):
    return DeliveryArchive(data_directory=str(tmp_path), filename="delivered.xlsx", lock_timeout=5)


@pytest.fixture
def delivered(make_order, menu):
    order = make_order(
        display_tag="ASP_PHONE_1830",
        platform=Platform.PHONE,
        status=OrderStatus.DELIVERED,
        delivery_time="18:30",
        items=[
            OrderItem(menu_item=menu["pizza_diavola"], quantity=2, notes="senza olive"),
            OrderItem(menu_item=menu["acqua"], quantity=1),
        ],
    )
    return order.model_copy(update={"customer_name": "Paolo Greco"})


def test_archive_row(delivered):
    row = order_archive_row(delivered, delivered_at=datetime(2024, 5, 17, 18, 40))

    assert row["order_number"] == "1830"
    assert row["platform"] == "phone"
    assert row["fulfillment"] == "pickup"
    assert row["items"] == "2x Pizza Diavola (senza olive); 1x Acqua Naturale"
    assert row["total_amount"] == 20.5
    assert row["delivered_at"] == "2024-05-17T18:40:00"


def test_archive_order_appends_once(archive, delivered):
    row = order_archive_row(delivered)

    first = archive.archive_order(row)
    second = archive.archive_order(row)

    assert first["success"] and first["archived_at"]
    assert second["success"]
    assert "already archived" in second["message"]

    rows = archive.get_all_orders()
    assert len(rows) == 1
    assert rows[0]["display_tag"] == "ASP_PHONE_1830"
    assert rows[0]["customer_name"] == "Paolo Greco"


def test_clear_all(archive, delivered):
    archive.archive_order(order_archive_row(delivered))

    assert archive.clear_all()
    assert archive.get_all_orders() == []


def test_archive_task_runs_eagerly(archive, delivered, monkeypatch):
    monkeypatch.setattr(tasks, "DeliveryArchive", lambda: archive)

    result = tasks.archive_delivered_order.apply(args=[order_archive_row(delivered)]).get()

    assert result["success"]
    assert result["order_id"] == delivered.id
    assert len(archive.get_all_orders()) == 1

    cleared = tasks.clear_archive.apply().get()

    assert cleared["success"]
    assert archive.get_all_orders() == []


def test_worker_health_task():
    assert tasks.health_check.apply().get()["status"] == "healthy"


async def test_in_process_archiving_leaves_the_event_loop_free(delivered, monkeypatch):
    rows = []

    def slow_archive(row):
        # Stands in for a contended file lock
        time.sleep(0.3)
        rows.append(row)
        return {"success": True, "message": "", "order_id": row["order_id"], "archived_at": None}

    monkeypatch.setattr(main.settings, "env_mode", EnvironmentMode.DEVELOPMENT)
    monkeypatch.setattr(main, "DeliveryArchive", lambda: SimpleNamespace(archive_order=slow_archive))

    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    task = asyncio.create_task(ticker())
    await main.archive_order(delivered)
    task.cancel()

    assert [row["order_id"] for row in rows] == [delivered.id]
    assert ticks >= 5


async def test_celery_archiving_goes_through_delay(delivered, monkeypatch):
    queued = []
    monkeypatch.setattr(main.settings, "env_mode", EnvironmentMode.PRODUCTION)
    monkeypatch.setattr(main, "archive_delivered_order", SimpleNamespace(delay=queued.append))

    await main.archive_order(delivered)

    assert [row["order_id"] for row in queued] == [delivered.id]
