"""
Order Writer

Persists priced orders and serves order reads and daily statistics.

Order numbers are for people, not for keys: a prefix plus a random 4-digit
number. A draw is re-rolled while it matches another order of the same
restaurant placed today, up to ``ORDER_NUMBER_ATTEMPTS`` draws; after that
the last draw is kept. The UUID ``id`` is the real identifier.
"""

import logging
import secrets
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.core.config import KNOWN_ORDER_STATUSES, get_settings
from restaurant_orders.core.exceptions import NotFoundError, PersistenceError
from restaurant_orders.models import Order, OrderStatus, utcnow
from restaurant_orders.schemas import MenuSummary, OrdersToday, RestaurantStats
from restaurant_orders.services.catalog import get_menu_availability_counts
from restaurant_orders.services.pricing import PricedOrder, format_money

logger = logging.getLogger(__name__)


def start_of_today() -> datetime:
    """Midnight UTC; timestamps are stored in UTC and "today" follows them."""
    return utcnow().replace(hour=0, minute=0, second=0, microsecond=0)


def draw_order_number(prefix: str) -> str:
    return f"{prefix}{1000 + secrets.randbelow(9000)}"


async def _numbers_used_today(db: AsyncSession, restaurant_id: str) -> set[str]:
    result = await db.execute(
        select(Order.order_number).where(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= start_of_today(),
        )
    )
    return set(result.scalars().all())


async def generate_order_number(db: AsyncSession, restaurant_id: str) -> str:
    """Pick a display number, avoiding today's numbers when possible."""
    settings = get_settings()
    used = await _numbers_used_today(db, restaurant_id)

    number = draw_order_number(settings.order_number_prefix)
    for _ in range(settings.order_number_attempts - 1):
        if number not in used:
            break
        number = draw_order_number(settings.order_number_prefix)
    else:
        if number in used:
            logger.warning(f"Order number {number} repeats today for restaurant {restaurant_id}")
    return number


def normalize_order_source(order_type: Optional[str]) -> str:
    source = (order_type or "").strip().lower()
    return source or get_settings().default_order_source


async def create_order(
    db: AsyncSession,
    restaurant_id: str,
    customer_name: str,
    phone_number: str,
    order_source: Optional[str],
    priced: PricedOrder,
    notes: Optional[str] = None,
) -> Order:
    """
    Insert one order built from server-priced lines.

    Raises:
        PersistenceError: the store rejected the insert (nothing was written)
    """
    try:
        order = Order(
            id=str(uuid.uuid4()),
            restaurant_id=restaurant_id,
            order_number=await generate_order_number(db, restaurant_id),
            customer_name=customer_name.strip(),
            phone_number=phone_number.strip(),
            order_source=normalize_order_source(order_source),
            order_items=priced.items_as_dicts(),
            subtotal=priced.subtotal,
            tax=priced.tax,
            total_amount=priced.total,
            notes=notes or "",
            status=OrderStatus.NEW.value,
        )
        db.add(order)
        await db.commit()
        await db.refresh(order)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Error creating order for restaurant {restaurant_id}: {e}")
        raise PersistenceError("Failed to create order") from e

    logger.info(f"✅ Order created: {order.order_number} - ${format_money(priced.total)}")
    return order


async def get_order(db: AsyncSession, restaurant_id: str, order_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id, Order.restaurant_id == restaurant_id)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


def parse_status_filter(raw: Optional[str]) -> list[str]:
    """``"new, ready"`` -> ``["new", "ready"]``."""
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


async def list_orders(
    db: AsyncSession,
    restaurant_id: str,
    statuses: Iterable[str] = (),
    limit: int = 50,
) -> list[Order]:
    """Newest orders first, optionally restricted to some statuses."""
    query = (
        select(Order)
        .where(Order.restaurant_id == restaurant_id)
        .order_by(Order.created_at.desc())
        .limit(limit)
    )
    statuses = list(statuses)
    if statuses:
        query = query.where(Order.status.in_(statuses))

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_restaurant_stats(db: AsyncSession, restaurant_id: str) -> RestaurantStats:
    """Menu availability counts and today's order aggregates."""
    total_items, available = await get_menu_availability_counts(db, restaurant_id)

    result = await db.execute(
        select(Order.total_amount, Order.status).where(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= start_of_today(),
        )
    )
    rows = result.all()

    by_status = {status: 0 for status in KNOWN_ORDER_STATUSES}
    for _, status in rows:
        if status in by_status:
            by_status[status] += 1

    revenue = sum((Decimal(amount) for amount, _ in rows), Decimal("0"))

    return RestaurantStats(
        menu=MenuSummary(
            total_items=total_items,
            available=available,
            out_of_stock=total_items - available,
        ),
        orders_today=OrdersToday(
            count=len(rows),
            revenue=format_money(revenue),
            by_status=by_status,
        ),
    )
