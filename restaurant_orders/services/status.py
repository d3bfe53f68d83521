"""
Order Status Machine

Applies status changes with a conditional update: the write only succeeds
when the row still carries the status that was read. When another request
wins the race the current status is re-read and the update retried, so every
prior status is consumed by exactly one writer and at most one customer
message goes out per transition.

Happy path: new -> preparing -> ready -> completed. Only those three steps
notify the customer; any other change is still broadcast to kitchen displays.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.core.config import KNOWN_ORDER_STATUSES, get_settings
from restaurant_orders.core.exceptions import ConflictError, NotFoundError, PersistenceError, ValidationError
from restaurant_orders.models import Order, OrderStatus, utcnow

logger = logging.getLogger(__name__)

# Transitions that trigger a customer message
CUSTOMER_TRANSITIONS: dict[tuple[str, str], str] = {
    (OrderStatus.NEW.value, OrderStatus.PREPARING.value): "preparing",
    (OrderStatus.PREPARING.value, OrderStatus.READY.value): "ready",
    (OrderStatus.READY.value, OrderStatus.COMPLETED.value): "completed",
}


@dataclass
class StatusChange:
    order: Order
    previous_status: str
    new_status: str

    @property
    def notification_key(self) -> Optional[str]:
        """Template key for the customer message, or None when nobody is told."""
        return classify_transition(self.previous_status, self.new_status)


def classify_transition(previous_status: str, new_status: str) -> Optional[str]:
    return CUSTOMER_TRANSITIONS.get((previous_status, new_status))


def validate_status(new_status: str) -> str:
    status = (new_status or "").strip()
    if not status:
        raise ValidationError("Status is required")
    if not get_settings().allow_unknown_statuses and status not in KNOWN_ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status. Options: {list(KNOWN_ORDER_STATUSES)}"
        )
    return status


async def _read_order(db: AsyncSession, order_id: str) -> Order:
    result = await db.execute(
        select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
    )
    order = result.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order not found")
    return order


async def transition_order_status(db: AsyncSession, order_id: str, new_status: str) -> StatusChange:
    """
    Move an order to ``new_status``.

    Raises:
        ValidationError: empty status, or unknown status when unknown statuses are disabled
        NotFoundError: no such order
        ConflictError: the row kept changing under us
        PersistenceError: the store rejected the write
    """
    status = validate_status(new_status)
    attempts = get_settings().status_update_attempts

    for attempt in range(1, attempts + 1):
        order = await _read_order(db, order_id)
        previous = order.status

        try:
            result = await db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == previous)
                .values(status=status, updated_at=utcnow())
            )
            if result.rowcount == 1:
                await db.commit()
                break
            await db.rollback()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Status update failed for order {order_id}: {e}")
            raise PersistenceError("Failed to update order status") from e

        logger.warning(
            f"Order {order_id} changed during status update "
            f"(attempt {attempt}/{attempts}), retrying"
        )
    else:
        raise ConflictError("Order was modified concurrently, please retry")

    order = await _read_order(db, order_id)
    logger.info(f"🔄 Order {order.order_number}: {previous} → {status}")
    return StatusChange(order=order, previous_status=previous, new_status=status)
