"""
Pydantic Schemas for Request/Response Validation

Request schemas are deliberately lenient where the ordering flow is lenient
(quantities, customization references); the pricing service decides what a
line is worth. Client-sent prices and names are accepted and dropped.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, ValidationInfo, field_validator


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderLineRequest(BaseModel):
    """A single requested line. Untrusted: only ids and quantities are used."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1, examples=["5b0c1d6e-8f1e-4f65-9c59-6c2d9b0f4a11"])
    quantity: Any = Field(default=None, examples=[2])
    customizations: list[str] = Field(default_factory=list)
    special_notes: Optional[str] = Field(None, max_length=500)

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("customizations", mode="before")
    @classmethod
    def flatten_customizations(cls, v: Any) -> list[str]:
        """Accept ``[{"id": ...}]`` or bare ids; skip anything without an id."""
        if not isinstance(v, list):
            return []
        ids = []
        for entry in v:
            if isinstance(entry, dict):
                entry = entry.get("id")
            if isinstance(entry, (str, int)) and not isinstance(entry, bool) and str(entry):
                ids.append(str(entry))
        return ids


class OrderCreate(BaseModel):
    """Request schema for creating a new order."""
    model_config = ConfigDict(extra="ignore")

    customer_name: Optional[str] = Field(None, max_length=100, examples=["Jane Doe"])
    phone_number: Optional[str] = Field(None, max_length=30, examples=["+1 555 123 4567"])
    order_type: Optional[str] = Field(None, max_length=30, examples=["walk-in", "phone"])
    items: list[OrderLineRequest] = Field(default_factory=list)
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("items", mode="before")
    @classmethod
    def none_items_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def missing_fields(self) -> list[str]:
        """Required fields that are absent or blank."""
        missing = []
        if not (self.customer_name or "").strip():
            missing.append("customer_name")
        if not (self.phone_number or "").strip():
            missing.append("phone_number")
        if not self.items:
            missing.append("items")
        return missing


class StatusUpdate(BaseModel):
    status: str = Field(..., min_length=1, max_length=30, examples=["preparing"])


class AvailabilityUpdate(BaseModel):
    is_available: StrictBool


class BulkAvailabilityUpdate(BaseModel):
    item_ids: list[str]
    is_available: StrictBool


class MenuItemUpdate(BaseModel):
    """Partial update; only fields present in the body are written."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    image_url: Optional[str] = Field(None, max_length=500)
    is_available: Optional[StrictBool] = None
    category_id: Optional[str] = None

    @field_validator("name", "price", "is_available", mode="before")
    @classmethod
    def reject_null(cls, v: Any, info: ValidationInfo) -> Any:
        """These columns may be omitted but never cleared."""
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


# =============================================================================
# RECORD SCHEMAS
# =============================================================================

class RestaurantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    name: str
    is_active: bool
    settings: dict[str, Any]
    created_at: Optional[datetime] = None


class MenuCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    name: str
    description: Optional[str] = None
    display_order: int
    is_active: bool


class MenuItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    category_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    price: Decimal
    image_url: Optional[str] = None
    is_available: bool
    display_order: int
    updated_at: Optional[datetime] = None


class CategoryRef(BaseModel):
    name: str


class MenuItemDetailOut(MenuItemOut):
    category: Optional[CategoryRef] = None


class MenuCategoryWithItems(MenuCategoryOut):
    items: list[MenuItemOut] = Field(default_factory=list)


class CustomizationOptionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    category_id: str
    name: str
    price: Decimal
    is_available: bool
    display_order: int


class CustomizationCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    menu_item_id: str
    name: str
    is_required: bool
    max_selections: Optional[int] = None
    display_order: int
    options: list[CustomizationOptionOut] = Field(default_factory=list)


class OrderOut(BaseModel):
    """A persisted order as stored."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    restaurant_id: str
    order_number: str
    customer_name: str
    phone_number: str
    order_source: str
    order_items: list[dict[str, Any]]
    subtotal: Decimal
    tax: Decimal
    total_amount: Decimal
    notes: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class RestaurantResponse(BaseModel):
    success: bool = True
    restaurant: RestaurantOut


class MenuStats(BaseModel):
    total_categories: int
    total_items: int
    available_items: int


class MenuResponse(BaseModel):
    success: bool = True
    menu: list[MenuCategoryWithItems]
    stats: MenuStats


class MenuItemResponse(BaseModel):
    success: bool = True
    item: MenuItemDetailOut
    message: Optional[str] = None


class MenuSearchResponse(BaseModel):
    success: bool = True
    results: list[MenuItemDetailOut]
    count: int


class BulkAvailabilityResponse(BaseModel):
    success: bool = True
    updated_count: int
    items: list[MenuItemOut]


class CustomizationsResponse(BaseModel):
    success: bool = True
    customizations: list[CustomizationCategoryOut]


class CreatedOrder(BaseModel):
    """Order summary returned on creation. Money is rendered as 2-decimal strings."""
    id: str
    order_number: str
    items: list[dict[str, Any]]
    subtotal: str
    tax: str
    total: str
    tax_rate: str


class OrderCreateResponse(BaseModel):
    success: bool = True
    order: CreatedOrder


class OrderResponse(BaseModel):
    success: bool = True
    order: OrderOut


class OrderListResponse(BaseModel):
    success: bool = True
    orders: list[OrderOut]
    count: int


class MenuSummary(BaseModel):
    total_items: int
    available: int
    out_of_stock: int


class OrdersToday(BaseModel):
    count: int
    revenue: str
    by_status: dict[str, int]


class RestaurantStats(BaseModel):
    menu: MenuSummary
    orders_today: OrdersToday


class StatsResponse(BaseModel):
    success: bool = True
    stats: RestaurantStats


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    unavailable: Optional[list[str]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    kds_connections: int
    messaging: str
    timestamp: datetime
