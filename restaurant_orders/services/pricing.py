"""
Price Resolver

Turns client-submitted order lines into priced lines using only catalog
data. Whatever price or name a client sends for an item or customization is
never read: unit prices come from ``menu_items``, customization prices from
``customization_options``.

Money is handled as Decimal. Line totals and the subtotal are exact sums of
two-decimal prices; tax is computed once over the subtotal and rounded half
up to cents, so ``total == subtotal + tax`` holds exactly.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.core.exceptions import NotFoundError, UnavailableItemError, ValidationError
from restaurant_orders.models import CustomizationCategory, CustomizationOption, MenuItem
from restaurant_orders.schemas import OrderLineRequest

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass
class ResolvedCustomization:
    id: str
    name: str
    price: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "price": float(self.price)}


@dataclass
class ResolvedLine:
    """An order line after server-side re-pricing."""
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int
    customizations: list[ResolvedCustomization] = field(default_factory=list)
    special_notes: Optional[str] = None

    @property
    def customization_total(self) -> Decimal:
        return sum((c.price for c in self.customizations), Decimal("0"))

    @property
    def line_total(self) -> Decimal:
        return (self.unit_price + self.customization_total) * self.quantity

    def to_dict(self) -> dict[str, Any]:
        """Shape stored in ``orders.order_items`` and returned to clients."""
        return {
            "id": self.item_id,
            "name": self.name,
            "price": float(self.unit_price),
            "quantity": self.quantity,
            "customizations": [c.to_dict() for c in self.customizations],
            "special_notes": self.special_notes or "",
            "item_total": float(self.line_total),
        }


@dataclass
class PricedOrder:
    lines: list[ResolvedLine]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal

    @property
    def tax_rate_display(self) -> str:
        """Tax rate as a percentage string, e.g. ``"8.0%"``."""
        return f"{(self.tax_rate * 100):.1f}%"

    def items_as_dicts(self) -> list[dict[str, Any]]:
        return [line.to_dict() for line in self.lines]


def to_money(value: Union[Decimal, float, int, str]) -> Decimal:
    """Round half up to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal) -> str:
    return f"{to_money(value):.2f}"


def coerce_quantity(value: Any) -> int:
    """
    Lenient quantity parsing: leading integers are read (``"2 pcs"`` -> 2),
    anything unparseable, absent, zero or negative becomes 1.
    """
    if isinstance(value, bool) or value is None:
        return 1
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, float):
        quantity = int(value) if value == value and abs(value) != float("inf") else 0
    else:
        match = _LEADING_INT.match(str(value))
        quantity = int(match.group(1)) if match else 0
    return quantity if quantity > 0 else 1


def coerce_tax_rate(value: Any) -> Decimal:
    try:
        rate = Decimal(str(value)) if value not in (None, "") else Decimal("0")
    except ArithmeticError:
        raise ValidationError("Restaurant tax rate is not a number")
    if not rate.is_finite() or rate < 0:
        raise ValidationError("Restaurant tax rate must be a non-negative fraction")
    return rate


def compute_totals(lines: Iterable[ResolvedLine], tax_rate: Decimal) -> tuple[Decimal, Decimal, Decimal]:
    """
    Order-level totals.

    Returns:
        (subtotal, tax, total), all rounded to cents
    """
    subtotal = to_money(sum((line.line_total for line in lines), Decimal("0")))
    tax = to_money(subtotal * tax_rate)
    return subtotal, tax, subtotal + tax


async def _fetch_items(db: AsyncSession, restaurant_id: str, item_ids: list[str]) -> dict[str, MenuItem]:
    result = await db.execute(
        select(MenuItem).where(MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(item_ids))
    )
    return {item.id: item for item in result.scalars().all()}


async def _fetch_options(db: AsyncSession, option_ids: set[str]) -> dict[str, tuple[CustomizationOption, str]]:
    """One batched lookup for every selected option: id -> (option, owning menu item id)."""
    if not option_ids:
        return {}
    result = await db.execute(
        select(CustomizationOption, CustomizationCategory.menu_item_id)
        .join(CustomizationCategory, CustomizationOption.category_id == CustomizationCategory.id)
        .where(CustomizationOption.id.in_(option_ids))
    )
    return {option.id: (option, menu_item_id) for option, menu_item_id in result.all()}


async def resolve_order(
    db: AsyncSession,
    restaurant_id: str,
    tax_rate: Any,
    lines: list[OrderLineRequest],
) -> PricedOrder:
    """
    Re-price requested lines from the catalog.

    Raises:
        ValidationError: no lines, or an unusable tax rate
        UnavailableItemError: any requested item is out of stock (whole order rejected)
        NotFoundError: a requested item does not exist in this restaurant
    """
    if not lines:
        raise ValidationError("Order must contain at least one item")

    rate = coerce_tax_rate(tax_rate)
    item_ids = list(dict.fromkeys(line.id for line in lines))
    items = await _fetch_items(db, restaurant_id, item_ids)

    unavailable = [item.name for item in items.values() if not item.is_available]
    if unavailable:
        logger.info(f"Order rejected for restaurant {restaurant_id}: unavailable {unavailable}")
        raise UnavailableItemError(unavailable)

    for item_id in item_ids:
        if item_id not in items:
            raise NotFoundError(f"Item {item_id} not found")

    options = await _fetch_options(db, {cid for line in lines for cid in line.customizations})

    resolved: list[ResolvedLine] = []
    for line in lines:
        item = items[line.id]
        customizations = []
        for option_id in line.customizations:
            match = options.get(option_id)
            if match is None:
                continue
            option, owner_item_id = match
            if owner_item_id != item.id or not option.is_available:
                logger.debug(f"Dropping customization {option_id} on item {item.id}")
                continue
            customizations.append(
                ResolvedCustomization(id=option.id, name=option.name, price=to_money(option.price or 0))
            )

        resolved.append(
            ResolvedLine(
                item_id=item.id,
                name=item.name,
                unit_price=to_money(item.price),
                quantity=coerce_quantity(line.quantity),
                customizations=customizations,
                special_notes=line.special_notes,
            )
        )

    subtotal, tax, total = compute_totals(resolved, rate)
    return PricedOrder(lines=resolved, subtotal=subtotal, tax=tax, total=total, tax_rate=rate)
