"""
Shared fixtures: in-memory SQLite store, a seeded two-restaurant catalog,
and recording fakes for the kitchen display hub and customer messaging.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV_MODE"] = "development"
for _name in ("REDIS_URL", "MESSAGING_PHONE_ID", "MESSAGING_ACCESS_TOKEN"):
    os.environ.pop(_name, None)

from decimal import Decimal
from typing import Any, Optional

import httpx
import pytest
import pytest_asyncio

from restaurant_orders.core.exceptions import UpstreamNotificationError
from restaurant_orders.database import Base, async_session_maker, engine
from restaurant_orders.main import app
from restaurant_orders.models import (
    CustomizationCategory,
    CustomizationOption,
    MenuCategory,
    MenuItem,
    Order,
    Restaurant,
)
from restaurant_orders.services.notifications import (
    BaseMessagingService,
    KitchenDisplayHub,
    NotificationResult,
    OrderNotifier,
    get_kitchen_hub,
    get_order_notifier,
)


RESTAURANT_ID = "rest-urban-diner"
OTHER_RESTAURANT_ID = "rest-pizza-place"


class RecordingMessagingService(BaseMessagingService):
    """Collects sent messages instead of calling the gateway."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    @property
    def provider_name(self) -> str:
        return "recording"

    async def send_text(self, to_phone: str, body: str) -> NotificationResult:
        if self.fail:
            raise UpstreamNotificationError("gateway down", gateway_status=503)
        self.sent.append((to_phone, body))
        return NotificationResult(success=True, message_id=f"msg-{len(self.sent)}", provider="recording")

    async def health_check(self) -> bool:
        return not self.fail


class RecordingHub(KitchenDisplayHub):
    """Local hub that also remembers every broadcast event."""

    def __init__(self):
        super().__init__()
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def broadcast(self, event: str, data: dict[str, Any]) -> int:
        self.events.append((event, data))
        return await super().broadcast(event, data)


class FakeWebSocket:
    def __init__(self, broken: bool = False):
        self.broken = broken
        self.accepted = False
        self.frames: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, frame: dict[str, Any]) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.frames.append(frame)


async def seed_catalog() -> None:
    async with async_session_maker() as db:
        db.add_all([
            Restaurant(id=RESTAURANT_ID, slug="urban-diner", name="Urban Diner", settings={"tax_rate": 0.08}),
            Restaurant(id=OTHER_RESTAURANT_ID, slug="pizza-place", name="Pizza Place", settings={"tax_rate": 0.1}),
            Restaurant(id="rest-closed", slug="closed-cafe", name="Closed Cafe", is_active=False, settings={}),
        ])
        await db.flush()

        db.add_all([
            MenuCategory(id="cat-burgers", restaurant_id=RESTAURANT_ID, name="Burgers", display_order=0),
            MenuCategory(id="cat-drinks", restaurant_id=RESTAURANT_ID, name="Drinks", display_order=1),
            MenuCategory(id="cat-hidden", restaurant_id=RESTAURANT_ID, name="Hidden", display_order=2, is_active=False),
            MenuCategory(id="cat-pizza", restaurant_id=OTHER_RESTAURANT_ID, name="Pizza"),
        ])
        await db.flush()

        db.add_all([
            MenuItem(id="item-burger", restaurant_id=RESTAURANT_ID, category_id="cat-burgers",
                     name="Classic Burger", price=Decimal("10.00"), display_order=0),
            MenuItem(id="item-fries", restaurant_id=RESTAURANT_ID, category_id="cat-burgers",
                     name="Fries", price=Decimal("3.50"), display_order=1),
            MenuItem(id="item-lemonade", restaurant_id=RESTAURANT_ID, category_id="cat-drinks",
                     name="Lemonade", price=Decimal("2.99"), display_order=0),
            MenuItem(id="item-soda", restaurant_id=RESTAURANT_ID, category_id="cat-drinks",
                     name="Cherry Soda", price=Decimal("2.00"), display_order=1, is_available=False),
            MenuItem(id="item-pizza", restaurant_id=OTHER_RESTAURANT_ID, category_id="cat-pizza",
                     name="Margherita", price=Decimal("12.00")),
        ])
        await db.flush()

        db.add_all([
            CustomizationCategory(id="cc-burger-extras", menu_item_id="item-burger", name="Extras"),
            CustomizationCategory(id="cc-fries-size", menu_item_id="item-fries", name="Size"),
        ])
        await db.flush()

        db.add_all([
            CustomizationOption(id="opt-cheese", category_id="cc-burger-extras", name="Extra Cheese",
                                price=Decimal("1.50"), display_order=0),
            CustomizationOption(id="opt-bacon", category_id="cc-burger-extras", name="Bacon",
                                price=Decimal("2.00"), display_order=1),
            CustomizationOption(id="opt-truffle", category_id="cc-burger-extras", name="Truffle",
                                price=Decimal("5.00"), display_order=2, is_available=False),
            CustomizationOption(id="opt-large", category_id="cc-fries-size", name="Large",
                                price=Decimal("1.00")),
        ])
        await db.commit()


@pytest_asyncio.fixture
async def database():
    """Fresh in-memory database per test, seeded with the catalog."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await seed_catalog()
    yield
    await engine.dispose()


@pytest_asyncio.fixture
async def db(database):
    async with async_session_maker() as session:
        yield session


@pytest.fixture
def hub() -> RecordingHub:
    return RecordingHub()


@pytest.fixture
def messaging() -> RecordingMessagingService:
    return RecordingMessagingService()


@pytest.fixture
def notifier(hub, messaging) -> OrderNotifier:
    return OrderNotifier(hub, messaging)


@pytest_asyncio.fixture
async def client(database, hub, notifier):
    app.dependency_overrides[get_kitchen_hub] = lambda: hub
    app.dependency_overrides[get_order_notifier] = lambda: notifier
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


async def count_orders(restaurant_id: Optional[str] = None) -> int:
    from sqlalchemy import func, select

    async with async_session_maker() as session:
        query = select(func.count(Order.id))
        if restaurant_id is not None:
            query = query.where(Order.restaurant_id == restaurant_id)
        return (await session.execute(query)).scalar_one()


def order_body(**overrides) -> dict[str, Any]:
    body = {
        "customer_name": "Jane Doe",
        "phone_number": "+1 (555) 123-4567",
        "order_type": "Phone",
        "items": [{"id": "item-burger", "quantity": 2, "customizations": [{"id": "opt-cheese"}]}],
        "notes": "Ring the bell",
    }
    body.update(overrides)
    return body
