"""
SQLAlchemy Database Models

Catalog tables (restaurants, menu categories, items, customization
categories and options) and the orders table. Every row is scoped to a
restaurant either directly or through its parent.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from restaurant_orders.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, enum.Enum):
    """Known order statuses. The column itself is an open string."""
    NEW = "new"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"


class Restaurant(Base):
    """A tenant. ``settings`` carries per-restaurant options such as tax_rate."""
    __tablename__ = "restaurants"

    id = Column(String(36), primary_key=True, default=new_id)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(200), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    settings = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    categories = relationship("MenuCategory", back_populates="restaurant")

    @property
    def tax_rate(self):
        """Raw configured rate; validated when an order is priced."""
        return (self.settings or {}).get("tax_rate")

    def __repr__(self):
        return f"<Restaurant {self.slug}>"


class MenuCategory(Base):
    __tablename__ = "menu_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="categories")
    items = relationship("MenuItem", back_populates="category")


class MenuItem(Base):
    """
    A sellable item. ``price`` here is the only price the order pipeline
    trusts; prices sent by clients are never read.
    """
    __tablename__ = "menu_items"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False, index=True)
    category_id = Column(String(36), ForeignKey("menu_categories.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    image_url = Column(String(500), nullable=True)
    is_available = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    category = relationship("MenuCategory", back_populates="items")
    customization_categories = relationship("CustomizationCategory", back_populates="menu_item")

    def __repr__(self):
        return f"<MenuItem {self.name} - {self.price}>"


class CustomizationCategory(Base):
    """A group of options for one menu item, e.g. "Toppings"."""
    __tablename__ = "customization_categories"

    id = Column(String(36), primary_key=True, default=new_id)
    menu_item_id = Column(String(36), ForeignKey("menu_items.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    is_required = Column(Boolean, nullable=False, default=False)
    max_selections = Column(Integer, nullable=True)
    display_order = Column(Integer, nullable=False, default=0)

    menu_item = relationship("MenuItem", back_populates="customization_categories")
    options = relationship("CustomizationOption", back_populates="category")


class CustomizationOption(Base):
    __tablename__ = "customization_options"

    id = Column(String(36), primary_key=True, default=new_id)
    category_id = Column(String(36), ForeignKey("customization_categories.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)
    display_order = Column(Integer, nullable=False, default=0)

    category = relationship("CustomizationCategory", back_populates="options")


class Order(Base):
    """
    A placed order.

    Resolved lines are stored as one JSON blob in ``order_items`` rather than
    normalized rows. ``status`` is a plain string so that statuses outside
    OrderStatus can still be stored when the deployment allows them.
    """
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    restaurant_id = Column(String(36), ForeignKey("restaurants.id"), nullable=False, index=True)
    order_number = Column(String(20), nullable=False, index=True)

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=False)
    phone_number = Column(String(30), nullable=False, index=True)
    order_source = Column(String(30), nullable=False, default="walk-in")

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    order_items = Column(JSON, nullable=False)
    notes = Column(Text, nullable=False, default="")

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)

    # =========================================================================
    # ORDER STATUS
    # =========================================================================
    status = Column(String(30), nullable=False, default=OrderStatus.NEW.value, index=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Order {self.order_number} - {self.customer_name} - {self.status}>"
