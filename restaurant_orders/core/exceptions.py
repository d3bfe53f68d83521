"""
Domain errors raised by the ordering services.

Each error carries the HTTP status it maps to; the FastAPI handlers in
``restaurant_orders.main`` render them as ``{"success": false, "error": ...}``.
"""

from typing import Any, Optional


class OrderingError(Exception):
    """Base class for errors the HTTP layer knows how to render."""

    status_code: int = 500

    def __init__(self, message: str, extra: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, **self.extra}


class ValidationError(OrderingError):
    """Missing or malformed request fields."""
    status_code = 400


class NotFoundError(OrderingError):
    """Restaurant, order or menu item does not exist (for this tenant)."""
    status_code = 404


class UnavailableItemError(OrderingError):
    """One or more requested menu items are out of stock."""
    status_code = 400

    def __init__(self, item_names: list[str]):
        super().__init__(
            "Some items are currently unavailable",
            extra={"unavailable": list(item_names)},
        )
        self.item_names = list(item_names)


class ConflictError(OrderingError):
    """A concurrent writer kept changing the row we tried to update."""
    status_code = 409


class PersistenceError(OrderingError):
    """The store rejected a write. The driver message is logged, not returned."""
    status_code = 500


class UpstreamNotificationError(OrderingError):
    """The messaging gateway failed. Always recovered locally."""
    status_code = 502

    def __init__(self, message: str, gateway_status: Optional[int] = None):
        super().__init__(message)
        self.gateway_status = gateway_status
