"""
Notification Service Factory

Builds the process-wide kitchen display hub, the optional messaging service
and the OrderNotifier that combines them. Routes receive these through
FastAPI dependencies, so tests can override them with fakes.
"""

import logging
from functools import lru_cache
from typing import Optional

from restaurant_orders.core.config import get_settings
from restaurant_orders.services.notifications.base import (
    BaseMessagingService,
    NotificationResult,
)
from restaurant_orders.services.notifications.broadcast import (
    KitchenDisplayHub,
    RedisKitchenDisplayHub,
)
from restaurant_orders.services.notifications.fanout import OrderNotifier
from restaurant_orders.services.notifications.gateway import GatewayMessagingService

logger = logging.getLogger(__name__)


@lru_cache()
def get_kitchen_hub() -> KitchenDisplayHub:
    """Redis-relayed hub when REDIS_URL is set, in-process hub otherwise."""
    settings = get_settings()

    if settings.redis_url:
        logger.info(f"Kitchen displays: Redis relay on channel {settings.kds_channel}")
        return RedisKitchenDisplayHub(settings.redis_url, settings.kds_channel)

    logger.info("Kitchen displays: in-process broadcast")
    return KitchenDisplayHub()


@lru_cache()
def get_messaging_service() -> Optional[BaseMessagingService]:
    """Gateway messaging, or None when its credentials are not configured."""
    settings = get_settings()

    if not settings.messaging_enabled:
        logger.info("Customer messaging disabled (no gateway credentials)")
        return None

    return GatewayMessagingService(
        phone_id=settings.messaging_phone_id,
        access_token=settings.messaging_access_token,
    )


@lru_cache()
def get_order_notifier() -> OrderNotifier:
    return OrderNotifier(get_kitchen_hub(), get_messaging_service())


def reset_notification_services() -> None:
    """Clear the cached instances."""
    get_order_notifier.cache_clear()
    get_messaging_service.cache_clear()
    get_kitchen_hub.cache_clear()


__all__ = [
    "get_kitchen_hub",
    "get_messaging_service",
    "get_order_notifier",
    "reset_notification_services",
    "BaseMessagingService",
    "NotificationResult",
    "KitchenDisplayHub",
    "RedisKitchenDisplayHub",
    "OrderNotifier",
    "GatewayMessagingService",
]
