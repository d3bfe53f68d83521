"""
Demo Data Seeder

Creates a demo restaurant with a small menu and customizations.
Run from project root: python scripts/seed_demo.py

Safe to run twice: an existing restaurant with the same slug is left alone.
"""

import asyncio
import os
import sys
from decimal import Decimal

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from restaurant_orders.database import async_session_maker, init_db
from restaurant_orders.models import (
    CustomizationCategory,
    CustomizationOption,
    MenuCategory,
    MenuItem,
    Restaurant,
)

DEMO_SLUG = "urban-diner"

MENU = {
    "Burgers": [
        ("Classic Burger", "10.00", {"Extras": [("Extra Cheese", "1.50"), ("Bacon", "2.00")]}),
        ("Veggie Burger", "11.50", {"Extras": [("Avocado", "1.75")]}),
    ],
    "Sides": [
        ("Fries", "3.50", {"Size": [("Regular", "0.00"), ("Large", "1.00")]}),
        ("Onion Rings", "4.25", {}),
    ],
    "Drinks": [
        ("Lemonade", "2.99", {}),
        ("Iced Tea", "2.49", {}),
    ],
}


async def seed() -> None:
    await init_db()

    async with async_session_maker() as db:
        result = await db.execute(select(Restaurant).where(Restaurant.slug == DEMO_SLUG))
        if result.scalar_one_or_none() is not None:
            print(f"Restaurant '{DEMO_SLUG}' already exists, nothing to do")
            return

        restaurant = Restaurant(slug=DEMO_SLUG, name="Urban Diner", settings={"tax_rate": 0.08})
        db.add(restaurant)
        await db.flush()

        for category_order, (category_name, items) in enumerate(MENU.items()):
            category = MenuCategory(
                restaurant_id=restaurant.id, name=category_name, display_order=category_order
            )
            db.add(category)
            await db.flush()

            for item_order, (item_name, price, groups) in enumerate(items):
                item = MenuItem(
                    restaurant_id=restaurant.id,
                    category_id=category.id,
                    name=item_name,
                    price=Decimal(price),
                    display_order=item_order,
                )
                db.add(item)
                await db.flush()

                for group_name, options in groups.items():
                    group = CustomizationCategory(menu_item_id=item.id, name=group_name)
                    db.add(group)
                    await db.flush()
                    for option_order, (option_name, option_price) in enumerate(options):
                        db.add(
                            CustomizationOption(
                                category_id=group.id,
                                name=option_name,
                                price=Decimal(option_price),
                                display_order=option_order,
                            )
                        )

        await db.commit()
        print(f"✅ Seeded '{DEMO_SLUG}' (id={restaurant.id})")


if __name__ == "__main__":
    asyncio.run(seed())
