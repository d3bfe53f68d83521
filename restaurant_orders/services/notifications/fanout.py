"""
Notification Fan-out

Dispatches order lifecycle events to kitchen displays and, when messaging is
configured, to the customer. Runs as a background task after the HTTP
response: nothing here can fail the order or the status change, and nothing
is retried.
"""

import logging
from typing import Any, Optional

from restaurant_orders.core.exceptions import UpstreamNotificationError
from restaurant_orders.models import Order
from restaurant_orders.services.notifications.base import BaseMessagingService
from restaurant_orders.services.notifications.broadcast import KitchenDisplayHub
from restaurant_orders.services.notifications.templates import (
    kitchen_order_payload,
    order_confirmation_text,
    status_message_text,
    status_update_payload,
)
from restaurant_orders.services.pricing import PricedOrder
from restaurant_orders.services.status import StatusChange

logger = logging.getLogger(__name__)

NEW_ORDER_EVENT = "new-kds-order"
ORDER_UPDATED_EVENT = "order_updated"


class OrderNotifier:
    """Kitchen display broadcast plus optional customer messaging."""

    def __init__(self, hub: KitchenDisplayHub, messaging: Optional[BaseMessagingService] = None):
        self.hub = hub
        self.messaging = messaging

    @property
    def messaging_enabled(self) -> bool:
        return self.messaging is not None

    async def order_created(
        self,
        order: Order,
        priced: PricedOrder,
        restaurant_name: Optional[str] = None,
    ) -> None:
        await self._broadcast(NEW_ORDER_EVENT, kitchen_order_payload(order, priced))

        if self.messaging is not None:
            await self._send(
                order.phone_number,
                order_confirmation_text(order, priced, restaurant_name),
                context=f"order {order.order_number} confirmation",
            )

    async def status_changed(self, change: StatusChange, restaurant_name: Optional[str] = None) -> None:
        order = change.order
        await self._broadcast(ORDER_UPDATED_EVENT, status_update_payload(order, change.previous_status))

        key = change.notification_key
        if key is None:
            logger.debug(
                f"No customer message for {order.order_number}: "
                f"{change.previous_status} → {change.new_status}"
            )
            return

        if self.messaging is not None:
            await self._send(
                order.phone_number,
                status_message_text(key, order.order_number, order.customer_name, restaurant_name),
                context=f"order {order.order_number} {key}",
            )

    async def _broadcast(self, event: str, data: dict[str, Any]) -> None:
        try:
            delivered = await self.hub.broadcast(event, data)
        except Exception as e:
            logger.error(f"Kitchen display broadcast of {event} failed: {e}")
            return
        logger.info(f"📡 {event} {data.get('orderNumber')} → {delivered} receiver(s)")

    async def _send(self, phone: str, body: str, context: str) -> None:
        try:
            result = await self.messaging.send_text(phone, body)
        except UpstreamNotificationError as e:
            logger.error(f"Customer message for {context} failed: {e.message}")
            return
        except Exception as e:
            logger.exception(f"Unexpected error sending customer message for {context}: {e}")
            return
        logger.info(f"📱 Customer message for {context} sent ({result.message_id})")
