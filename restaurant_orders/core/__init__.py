"""
Core module initialization.
Exports configuration, logging utilities and domain errors.
"""

from restaurant_orders.core.config import get_settings, Settings, EnvironmentMode
from restaurant_orders.core.exceptions import (
    OrderingError,
    ValidationError,
    NotFoundError,
    UnavailableItemError,
    ConflictError,
    PersistenceError,
    UpstreamNotificationError,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "OrderingError",
    "ValidationError",
    "NotFoundError",
    "UnavailableItemError",
    "ConflictError",
    "PersistenceError",
    "UpstreamNotificationError",
]
