from datetime import timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from restaurant_orders.database import async_session_maker
from restaurant_orders.models import Order
from restaurant_orders.services import orders as order_service
from tests.conftest import OTHER_RESTAURANT_ID, RESTAURANT_ID, count_orders, order_body


async def test_create_order_prices_on_server(client, hub, messaging):
    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    order = data["order"]
    assert order["subtotal"] == "23.00"
    assert order["tax"] == "1.84"
    assert order["total"] == "24.84"
    assert order["tax_rate"] == "8.0%"
    assert order["order_number"].startswith("UD")
    assert len(order["order_number"]) == 6
    assert order["items"][0]["item_total"] == 23.0
    assert order["items"][0]["customizations"] == [{"id": "opt-cheese", "name": "Extra Cheese", "price": 1.5}]

    async with async_session_maker() as db:
        stored = await db.get(Order, order["id"])
    assert stored.status == "new"
    assert stored.order_source == "phone"
    assert stored.total_amount == Decimal("24.84")
    assert stored.subtotal + stored.tax == stored.total_amount
    assert stored.notes == "Ring the bell"
    assert stored.order_items[0]["name"] == "Classic Burger"


async def test_create_order_notifies_kitchen_and_customer(client, hub, messaging):
    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())
    order = response.json()["order"]

    assert [event for event, _ in hub.events] == ["new-kds-order"]
    payload = hub.events[0][1]
    assert payload["orderNumber"] == order["order_number"]
    assert payload["restaurantId"] == RESTAURANT_ID
    assert payload["customerName"] == "Jane Doe"
    assert payload["total"] == "24.84"
    assert payload["items"][0]["display"] == "2x Classic Burger (Extra Cheese)"
    assert payload["status"] == "new"

    assert len(messaging.sent) == 1
    phone, body = messaging.sent[0]
    assert phone == "+1 (555) 123-4567"
    assert order["order_number"] in body
    assert "Total: $24.84" in body


async def test_forged_prices_have_no_effect(client):
    body = order_body(items=[{"id": "item-burger", "quantity": 2, "price": 0.01, "item_total": 0.02,
                              "customizations": [{"id": "opt-cheese", "price": 0}]}])
    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=body)
    assert response.json()["order"]["total"] == "24.84"


async def test_messaging_failure_does_not_fail_order(client, hub, messaging):
    messaging.fail = True

    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())

    assert response.status_code == 200
    assert len(hub.events) == 1
    assert await count_orders() == 1


async def test_empty_items_is_rejected_without_write(client, hub):
    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body(items=[]))

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "items" in response.json()["error"]
    assert await count_orders() == 0
    assert hub.events == []


async def test_missing_customer_fields_are_rejected(client):
    body = order_body()
    del body["customer_name"]
    body["phone_number"] = "  "

    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=body)

    assert response.status_code == 400
    assert response.json()["error"] == "Missing required fields: customer_name, phone_number"


async def test_malformed_body_is_a_400(client):
    response = await client.post(
        f"/api/restaurants/{RESTAURANT_ID}/orders",
        json=order_body(items=[{"quantity": 1}]),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_unavailable_item_rejects_order(client, hub, messaging):
    body = order_body(items=[{"id": "item-burger"}, {"id": "item-soda"}])

    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=body)

    assert response.status_code == 400
    assert response.json() == {
        "success": False,
        "error": "Some items are currently unavailable",
        "unavailable": ["Cherry Soda"],
    }
    assert await count_orders() == 0
    assert hub.events == []
    assert messaging.sent == []


async def test_unknown_item_and_restaurant_are_404(client):
    response = await client.post(
        f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body(items=[{"id": "item-pizza"}])
    )
    assert response.status_code == 404

    response = await client.post("/api/restaurants/rest-nope/orders", json=order_body())
    assert response.status_code == 404
    assert await count_orders() == 0


async def test_lenient_quantity_and_default_source(client):
    body = order_body(order_type=None, items=[{"id": "item-lemonade", "quantity": "lots"}])

    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=body)

    order = response.json()["order"]
    assert order["items"][0]["quantity"] == 1
    assert order["subtotal"] == "2.99"

    async with async_session_maker() as db:
        stored = (await db.execute(select(Order))).scalar_one()
    assert stored.order_source == "walk-in"


async def test_list_orders_filters_by_status(client):
    ids = []
    for _ in range(3):
        response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())
        ids.append(response.json()["order"]["id"])
    await client.put(f"/api/orders/{ids[0]}/status", json={"status": "ready"})

    response = await client.get(f"/api/restaurants/{RESTAURANT_ID}/orders")
    assert response.json()["count"] == 3

    response = await client.get(f"/api/restaurants/{RESTAURANT_ID}/orders", params={"status": "ready"})
    data = response.json()
    assert data["count"] == 1
    assert data["orders"][0]["id"] == ids[0]

    response = await client.get(f"/api/restaurants/{RESTAURANT_ID}/orders", params={"status": "new, ready"})
    assert response.json()["count"] == 3

    response = await client.get(f"/api/restaurants/{OTHER_RESTAURANT_ID}/orders")
    assert response.json()["count"] == 0


async def test_get_order_is_scoped_to_restaurant(client):
    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())
    order_id = response.json()["order"]["id"]

    response = await client.get(f"/api/restaurants/{RESTAURANT_ID}/orders/{order_id}")
    assert response.status_code == 200
    assert response.json()["order"]["total_amount"] == "24.84"

    response = await client.get(f"/api/restaurants/{OTHER_RESTAURANT_ID}/orders/{order_id}")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Order not found"}


async def test_restaurant_stats(client):
    for _ in range(2):
        await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())

    response = await client.get(f"/api/restaurants/{RESTAURANT_ID}/stats")

    stats = response.json()["stats"]
    assert stats["menu"] == {"total_items": 4, "available": 3, "out_of_stock": 1}
    assert stats["orders_today"]["count"] == 2
    assert stats["orders_today"]["revenue"] == "49.68"
    assert stats["orders_today"]["by_status"]["new"] == 2
    assert stats["orders_today"]["by_status"]["completed"] == 0


async def test_store_failure_during_numbering_is_a_persistence_error(client, hub, monkeypatch):
    async def store_down(db, restaurant_id):
        raise OperationalError("SELECT order_number", {}, Exception("connection lost"))

    monkeypatch.setattr(order_service, "_numbers_used_today", store_down)

    response = await client.post(f"/api/restaurants/{RESTAURANT_ID}/orders", json=order_body())

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Failed to create order"}
    assert hub.events == []
    monkeypatch.undo()
    assert await count_orders() == 0


def test_today_starts_at_utc_midnight():
    start = order_service.start_of_today()

    assert start.tzinfo == timezone.utc
    assert (start.hour, start.minute, start.second, start.microsecond) == (0, 0, 0, 0)
