import asyncio

import pytest
from fastapi.testclient import TestClient

from delivery_desk.main import app, get_manager


@pytest.fixture
def client(manager):
    asyncio.run(manager.start())
    app.dependency_overrides[get_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


def create(client, **overrides):
    payload = {
        "platform": "glovo",
        "external_reference": "GL1",
        "customer_name": "Marco Bianchi",
        "requested_time": "14:10",
        "items": [{"menu_item_id": "pizza_margherita", "quantity": 2}],
    }
    payload.update(overrides)
    return client.post("/api/delivery/orders", json=payload)


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["documentation"] == "/docs"


def test_menu(client):
    response = client.get("/api/menu")
    assert response.status_code == 200
    assert "pizza_margherita" in {item["id"] for item in response.json()}


def test_create_and_list(client):
    response = create(client)

    assert response.status_code == 200
    order = response.json()["order"]
    assert order["display_tag"] == "DEL_GLOVO_GL1"
    assert order["label"] == "Glovo - Marco Bianchi"

    listing = client.get("/api/delivery/orders").json()
    assert listing["total"] == 1
    view = listing["orders"][0]
    assert view["total"] == 16.0
    assert view["urgency"]["level"] == "urgent"
    assert view["next_status"] == "in_preparation"
    assert view["action_label"] == "START"


@pytest.mark.parametrize(
    "overrides, status_code",
    [
        ({"items": []}, 400),
        ({"items": [{"menu_item_id": "sushi", "quantity": 1}]}, 400),
        ({"requested_time": "25:00"}, 422),
        ({"platform": "ubereats"}, 422),
    ],
)
def test_create_rejects_bad_orders(client, overrides, status_code):
    assert create(client, **overrides).status_code == status_code
    assert client.get("/api/delivery/orders").json()["total"] == 0


def test_list_filters_and_validates_platform(client):
    create(client)
    create(client, platform="takeaway", external_reference=None)

    assert client.get("/api/delivery/orders", params={"platform": "takeaway"}).json()["total"] == 1
    assert client.get("/api/delivery/orders", params={"platform": "postmates"}).status_code == 400
    assert client.get("/api/delivery/orders", params={"sort": "platform"}).status_code == 200


def test_columns(client):
    create(client)

    columns = client.get("/api/delivery/columns").json()

    assert len(columns) == 6
    glovo = next(c for c in columns if c["platform"] == "glovo")
    assert glovo["label"] == "Glovo"
    assert len(glovo["orders"]) == 1


def test_advance(client):
    order_id = create(client).json()["order"]["id"]

    skipped = client.post(f"/api/delivery/orders/{order_id}/advance", json={"status": "ready"})
    assert skipped.status_code == 409

    started = client.post(f"/api/delivery/orders/{order_id}/advance", json={"status": "in_preparation"})
    assert started.status_code == 200
    assert started.json()["order"]["status"] == "in_preparation"

    missing = client.post("/api/delivery/orders/nope/advance", json={"status": "in_preparation"})
    assert missing.status_code == 404


def test_delete_needs_confirmation(client):
    order_id = create(client).json()["order"]["id"]

    assert client.delete(f"/api/delivery/orders/{order_id}").status_code == 428
    assert client.delete(f"/api/delivery/orders/{order_id}", params={"confirm": True}).status_code == 200
    assert client.delete(f"/api/delivery/orders/{order_id}", params={"confirm": True}).status_code == 404
    assert client.get("/api/delivery/orders").json()["total"] == 0


def test_scan_then_create(client):
    scan = client.post(
        "/api/delivery/scan",
        files={"file": ("receipt.jpg", b"\xff\xd8fake-jpeg", "image/jpeg")},
    )

    assert scan.status_code == 200
    extraction = scan.json()
    assert extraction["orderId"] == "JE48213"

    created = client.post(
        "/api/delivery/orders/from-scan",
        json={"platform": "just-eat", "extraction": extraction},
    )

    assert created.status_code == 200
    order = created.json()["order"]
    assert order["id"].startswith("scan_")
    assert order["display_tag"] == "DEL_JUST-EAT_JE48213"


def test_notices(client):
    create(client)
    create(client, items=[])

    notices = client.get("/api/delivery/notices").json()

    assert [n["level"] for n in notices[-2:]] == ["success", "error"]
    assert len(client.get("/api/delivery/notices", params={"limit": 1}).json()) == 1
