"""
Customer message templates and kitchen display projections.
"""

from typing import Any, Optional

from restaurant_orders.models import Order
from restaurant_orders.services.pricing import PricedOrder, ResolvedLine, format_money


STATUS_TEMPLATES = {
    "preparing": "👨‍🍳 Good news{greeting}! Your order {order_number} is now being prepared.",
    "ready": "✅ Your order {order_number} is ready for pickup{at_restaurant}!",
    "completed": "🙏 Thank you for your order {order_number}{at_restaurant}. Enjoy your meal!",
}


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def line_display(line: ResolvedLine) -> str:
    """``"2x Burger (Extra Cheese, No Onions)"``."""
    text = f"{line.quantity}x {line.name}"
    if line.customizations:
        text += f" ({', '.join(c.name for c in line.customizations)})"
    return text


def order_confirmation_text(order: Order, priced: PricedOrder, restaurant_name: Optional[str] = None) -> str:
    """Order summary sent to the customer when an order is placed."""
    header = f"Hi {order.customer_name}! Your order {order.order_number}"
    if restaurant_name:
        header += f" at {restaurant_name}"
    header += " has been received."

    lines = [f"• {line_display(line)} - ${format_money(line.line_total)}" for line in priced.lines]

    return "\n".join(
        [
            header,
            "",
            *lines,
            "",
            f"Subtotal: ${format_money(priced.subtotal)}",
            f"Tax: ${format_money(priced.tax)}",
            f"Total: ${format_money(priced.total)}",
            "",
            "We'll message you when it's ready.",
        ]
    )


def status_message_text(
    key: str,
    order_number: str,
    customer_name: Optional[str] = None,
    restaurant_name: Optional[str] = None,
) -> str:
    return STATUS_TEMPLATES[key].format(
        order_number=order_number,
        greeting=f", {customer_name}" if customer_name else "",
        at_restaurant=f" at {restaurant_name}" if restaurant_name else "",
    )


def kitchen_order_payload(order: Order, priced: PricedOrder) -> dict[str, Any]:
    """Display-ready projection of a new order for kitchen screens."""
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "restaurantId": order.restaurant_id,
        "customerName": order.customer_name,
        "phoneNumber": order.phone_number,
        "orderType": order.order_source,
        "items": [
            {
                "id": line.item_id,
                "name": line.name,
                "quantity": line.quantity,
                "display": line_display(line),
                "customizations": [c.name for c in line.customizations],
                "specialNotes": line.special_notes or "",
                "itemTotal": format_money(line.line_total),
            }
            for line in priced.lines
        ],
        "subtotal": format_money(priced.subtotal),
        "tax": format_money(priced.tax),
        "total": format_money(priced.total),
        "status": order.status,
        "createdAt": _iso(order.created_at),
        "notes": order.notes or "",
    }


def status_update_payload(order: Order, previous_status: str) -> dict[str, Any]:
    return {
        "id": order.id,
        "orderNumber": order.order_number,
        "restaurantId": order.restaurant_id,
        "previousStatus": previous_status,
        "status": order.status,
        "updatedAt": _iso(order.updated_at),
    }
