"""
Catalog Reader

Read access to restaurants, menus and customizations, plus the small set of
menu maintenance writes (availability toggles, item edits). Child rows are
fetched in one query per table and grouped under their parents in memory.
"""

import logging
from collections import defaultdict
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from restaurant_orders.core.exceptions import NotFoundError, PersistenceError, ValidationError
from restaurant_orders.models import (
    CustomizationCategory,
    CustomizationOption,
    MenuCategory,
    MenuItem,
    Restaurant,
    utcnow,
)
from restaurant_orders.schemas import (
    CategoryRef,
    CustomizationCategoryOut,
    CustomizationOptionOut,
    MenuCategoryOut,
    MenuCategoryWithItems,
    MenuItemDetailOut,
    MenuItemOut,
    MenuItemUpdate,
    MenuStats,
)

logger = logging.getLogger(__name__)


# =============================================================================
# RESTAURANTS
# =============================================================================

async def get_restaurant_by_slug(db: AsyncSession, slug: str) -> Restaurant:
    """Active restaurant for a public slug."""
    result = await db.execute(
        select(Restaurant).where(Restaurant.slug == slug, Restaurant.is_active.is_(True))
    )
    restaurant = result.scalar_one_or_none()
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


async def get_restaurant(db: AsyncSession, restaurant_id: str) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise NotFoundError("Restaurant not found")
    return restaurant


# =============================================================================
# MENU
# =============================================================================

def group_menu(
    categories: list[MenuCategory],
    items: list[MenuItem],
) -> list[MenuCategoryWithItems]:
    """Attach each item to its category, preserving the input order of both."""
    by_category: dict[Optional[str], list[MenuItemOut]] = defaultdict(list)
    for item in items:
        by_category[item.category_id].append(MenuItemOut.model_validate(item))

    return [
        MenuCategoryWithItems(
            **MenuCategoryOut.model_validate(category).model_dump(),
            items=by_category.get(category.id, []),
        )
        for category in categories
    ]


async def get_menu(
    db: AsyncSession,
    restaurant_id: str,
    available_only: bool = False,
) -> tuple[list[MenuCategoryWithItems], MenuStats]:
    """
    Full menu of a restaurant, grouped by active category.

    Returns:
        (menu, stats) where stats counts the fetched categories and items
    """
    category_result = await db.execute(
        select(MenuCategory)
        .where(MenuCategory.restaurant_id == restaurant_id, MenuCategory.is_active.is_(True))
        .order_by(MenuCategory.display_order, MenuCategory.name)
    )
    categories = list(category_result.scalars().all())

    items_query = (
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id)
        .order_by(MenuItem.display_order, MenuItem.name)
    )
    if available_only:
        items_query = items_query.where(MenuItem.is_available.is_(True))
    items_result = await db.execute(items_query)
    items = list(items_result.scalars().all())

    stats = MenuStats(
        total_categories=len(categories),
        total_items=len(items),
        available_items=sum(1 for item in items if item.is_available),
    )
    return group_menu(categories, items), stats


def _item_detail(item: MenuItem) -> MenuItemDetailOut:
    category = CategoryRef(name=item.category.name) if item.category is not None else None
    return MenuItemDetailOut(**MenuItemOut.model_validate(item).model_dump(), category=category)


async def get_menu_item(db: AsyncSession, restaurant_id: str, item_id: str) -> MenuItemDetailOut:
    result = await db.execute(
        select(MenuItem)
        .options(selectinload(MenuItem.category))
        .where(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Item not found")
    return _item_detail(item)


async def search_menu_items(db: AsyncSession, restaurant_id: str, query: str) -> list[MenuItemDetailOut]:
    """Case-insensitive substring search on item names."""
    term = (query or "").strip()
    if len(term) < 2:
        raise ValidationError("Search query must be at least 2 characters")

    result = await db.execute(
        select(MenuItem)
        .options(selectinload(MenuItem.category))
        .where(MenuItem.restaurant_id == restaurant_id, MenuItem.name.ilike(f"%{term}%"))
        .order_by(MenuItem.name)
    )
    return [_item_detail(item) for item in result.scalars().all()]


async def get_item_customizations(db: AsyncSession, item_id: str) -> list[CustomizationCategoryOut]:
    """Customization categories of an item, each with its options."""
    category_result = await db.execute(
        select(CustomizationCategory)
        .where(CustomizationCategory.menu_item_id == item_id)
        .order_by(CustomizationCategory.display_order, CustomizationCategory.name)
    )
    categories = list(category_result.scalars().all())
    if not categories:
        return []

    option_result = await db.execute(
        select(CustomizationOption)
        .where(CustomizationOption.category_id.in_([c.id for c in categories]))
        .order_by(CustomizationOption.display_order, CustomizationOption.name)
    )
    options_by_category: dict[str, list[CustomizationOptionOut]] = defaultdict(list)
    for option in option_result.scalars().all():
        options_by_category[option.category_id].append(CustomizationOptionOut.model_validate(option))

    return [
        CustomizationCategoryOut(
            id=category.id,
            menu_item_id=category.menu_item_id,
            name=category.name,
            is_required=category.is_required,
            max_selections=category.max_selections,
            display_order=category.display_order,
            options=options_by_category.get(category.id, []),
        )
        for category in categories
    ]


# =============================================================================
# MENU MAINTENANCE
# =============================================================================

async def _commit(db: AsyncSession, action: str) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"{action} failed: {e}")
        raise PersistenceError(f"Failed to {action}") from e


async def update_menu_item(
    db: AsyncSession,
    restaurant_id: str,
    item_id: str,
    changes: MenuItemUpdate,
) -> MenuItemDetailOut:
    """Apply the fields present in ``changes`` to one item."""
    result = await db.execute(
        select(MenuItem)
        .options(selectinload(MenuItem.category))
        .where(MenuItem.id == item_id, MenuItem.restaurant_id == restaurant_id)
    )
    item = result.scalar_one_or_none()
    if item is None:
        raise NotFoundError("Item not found")

    fields: dict[str, Any] = changes.model_dump(exclude_unset=True)
    for field, value in fields.items():
        setattr(item, field, value)
    item.updated_at = utcnow()

    await _commit(db, "update item")
    await db.refresh(item, attribute_names=["category"])

    logger.info(f"✅ Menu item updated: {item.name} ({', '.join(fields) or 'no fields'})")
    return _item_detail(item)


async def set_item_availability(
    db: AsyncSession,
    restaurant_id: str,
    item_id: str,
    is_available: bool,
) -> MenuItemDetailOut:
    """Mark one item in or out of stock."""
    item = await update_menu_item(
        db, restaurant_id, item_id, MenuItemUpdate(is_available=is_available)
    )
    logger.info(f"📦 Item {item.name} availability: {'IN STOCK' if is_available else 'OUT OF STOCK'}")
    return item


async def bulk_set_availability(
    db: AsyncSession,
    restaurant_id: str,
    item_ids: list[str],
    is_available: bool,
) -> list[MenuItemOut]:
    """Set availability of many items of one restaurant in a single statement."""
    if not item_ids:
        return []

    await db.execute(
        update(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(item_ids))
        .values(is_available=is_available, updated_at=utcnow())
    )
    await _commit(db, "bulk update availability")

    result = await db.execute(
        select(MenuItem)
        .where(MenuItem.restaurant_id == restaurant_id, MenuItem.id.in_(item_ids))
        .order_by(MenuItem.display_order, MenuItem.name)
        .execution_options(populate_existing=True)
    )
    items = [MenuItemOut.model_validate(item) for item in result.scalars().all()]

    logger.info(
        f"📦 Bulk update: {len(items)} items marked as "
        f"{'available' if is_available else 'unavailable'}"
    )
    return items


async def get_menu_availability_counts(db: AsyncSession, restaurant_id: str) -> tuple[int, int]:
    """(total items, available items) for a restaurant."""
    result = await db.execute(
        select(MenuItem.is_available).where(MenuItem.restaurant_id == restaurant_id)
    )
    flags = list(result.scalars().all())
    return len(flags), sum(1 for flag in flags if flag)
