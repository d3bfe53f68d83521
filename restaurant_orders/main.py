"""
FastAPI Application Entry Point

Multi-tenant restaurant ordering backend.

Endpoints:
    - GET  /api/restaurants/{slug}: Restaurant by public slug
    - GET  /api/restaurants/{restaurant_id}/menu: Menu grouped by category
    - GET  /api/menu-items/{item_id}/customizations: Item customizations
    - POST /api/restaurants/{restaurant_id}/orders: Create order (server-side pricing)
    - PUT  /api/orders/{order_id}/status: Change order status
    - GET  /api/restaurants/{restaurant_id}/orders: List orders
    - GET  /api/restaurants/{restaurant_id}/stats: Menu and today's order stats
    - WS   /ws/kds: Kitchen display event stream
    - GET  /health: System health check
"""

import logging
from datetime import datetime
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from restaurant_orders.core.config import get_settings, setup_logging
from restaurant_orders.core.exceptions import OrderingError, ValidationError
from restaurant_orders.database import get_db, init_db, engine
from restaurant_orders.models import Restaurant
from restaurant_orders.schemas import (
    AvailabilityUpdate,
    BulkAvailabilityResponse,
    BulkAvailabilityUpdate,
    CreatedOrder,
    CustomizationsResponse,
    ErrorResponse,
    HealthResponse,
    MenuItemResponse,
    MenuItemUpdate,
    MenuResponse,
    MenuSearchResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderOut,
    OrderResponse,
    RestaurantOut,
    RestaurantResponse,
    StatsResponse,
    StatusUpdate,
)
from restaurant_orders.services import catalog
from restaurant_orders.services.notifications import (
    KitchenDisplayHub,
    OrderNotifier,
    get_kitchen_hub,
    get_messaging_service,
    get_order_notifier,
)
from restaurant_orders.services.orders import (
    create_order,
    get_order,
    get_restaurant_stats,
    list_orders,
    parse_status_filter,
)
from restaurant_orders.services.pricing import format_money, resolve_order
from restaurant_orders.services.status import transition_order_status

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    await init_db()
    logger.info("✅ Database initialized")

    hub = get_kitchen_hub()
    await hub.start()
    messaging = get_messaging_service()
    logger.info(f"✅ Kitchen displays: {hub.provider_name}")
    logger.info(f"✅ Customer messaging: {messaging.provider_name if messaging else 'disabled'}")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await hub.stop()
    if messaging is not None:
        await messaging.aclose()
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Multi-tenant restaurant ordering API with server-side pricing, "
        "kitchen display broadcasts and customer notifications."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db),
    hub: KitchenDisplayHub = Depends(get_kitchen_hub),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> HealthResponse:
    """Liveness plus the number of connected kitchen displays."""
    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    messaging_status = "disabled"
    if notifier.messaging_enabled:
        messaging_status = "enabled" if await notifier.messaging.health_check() else "unhealthy"

    return HealthResponse(
        status="operational" if db_status == "healthy" else "degraded",
        database=db_status,
        kds_connections=hub.connection_count,
        messaging=messaging_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# RESTAURANT & MENU ENDPOINTS
# =============================================================================

@app.get(
    "/api/restaurants/{slug}",
    response_model=RestaurantResponse,
    responses=ERROR_RESPONSES,
    tags=["Restaurants"],
)
async def get_restaurant_by_slug(slug: str, db: AsyncSession = Depends(get_db)) -> RestaurantResponse:
    restaurant = await catalog.get_restaurant_by_slug(db, slug)
    return RestaurantResponse(restaurant=RestaurantOut.model_validate(restaurant))


@app.get(
    "/api/restaurants/{restaurant_id}/menu",
    response_model=MenuResponse,
    tags=["Menu"],
    summary="Full menu grouped by category",
)
async def get_menu(
    restaurant_id: str,
    available_only: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> MenuResponse:
    menu, stats = await catalog.get_menu(db, restaurant_id, available_only=available_only)
    return MenuResponse(menu=menu, stats=stats)


@app.get(
    "/api/restaurants/{restaurant_id}/menu/search",
    response_model=MenuSearchResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def search_menu(
    restaurant_id: str,
    q: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
) -> MenuSearchResponse:
    results = await catalog.search_menu_items(db, restaurant_id, q or "")
    return MenuSearchResponse(results=results, count=len(results))


@app.post(
    "/api/restaurants/{restaurant_id}/menu/bulk-availability",
    response_model=BulkAvailabilityResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def bulk_availability(
    restaurant_id: str,
    body: BulkAvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> BulkAvailabilityResponse:
    items = await catalog.bulk_set_availability(db, restaurant_id, body.item_ids, body.is_available)
    return BulkAvailabilityResponse(updated_count=len(items), items=items)


@app.get(
    "/api/restaurants/{restaurant_id}/menu/{item_id}",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def get_menu_item(
    restaurant_id: str,
    item_id: str,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await catalog.get_menu_item(db, restaurant_id, item_id)
    return MenuItemResponse(item=item)


@app.put(
    "/api/restaurants/{restaurant_id}/menu/{item_id}",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def update_menu_item(
    restaurant_id: str,
    item_id: str,
    changes: MenuItemUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await catalog.update_menu_item(db, restaurant_id, item_id, changes)
    return MenuItemResponse(item=item)


@app.patch(
    "/api/restaurants/{restaurant_id}/menu/{item_id}/availability",
    response_model=MenuItemResponse,
    responses=ERROR_RESPONSES,
    tags=["Menu"],
)
async def toggle_item_availability(
    restaurant_id: str,
    item_id: str,
    body: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
) -> MenuItemResponse:
    item = await catalog.set_item_availability(db, restaurant_id, item_id, body.is_available)
    message = "Item marked as available" if body.is_available else "Item marked as out of stock"
    return MenuItemResponse(item=item, message=message)


@app.get(
    "/api/menu-items/{item_id}/customizations",
    response_model=CustomizationsResponse,
    tags=["Menu"],
)
async def get_item_customizations(item_id: str, db: AsyncSession = Depends(get_db)) -> CustomizationsResponse:
    customizations = await catalog.get_item_customizations(db, item_id)
    return CustomizationsResponse(customizations=customizations)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/restaurants/{restaurant_id}/orders",
    response_model=OrderCreateResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Create order with server-side pricing",
)
async def place_order(
    restaurant_id: str,
    order_data: OrderCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> OrderCreateResponse:
    """
    Price the requested lines from the catalog, store the order, then notify
    kitchen displays and the customer in the background.
    """
    missing = order_data.missing_fields()
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    restaurant = await catalog.get_restaurant(db, restaurant_id)
    priced = await resolve_order(db, restaurant.id, restaurant.tax_rate, order_data.items)

    order = await create_order(
        db,
        restaurant_id=restaurant.id,
        customer_name=order_data.customer_name,
        phone_number=order_data.phone_number,
        order_source=order_data.order_type,
        priced=priced,
        notes=order_data.notes,
    )

    background_tasks.add_task(notifier.order_created, order, priced, restaurant.name)

    return OrderCreateResponse(
        order=CreatedOrder(
            id=order.id,
            order_number=order.order_number,
            items=priced.items_as_dicts(),
            subtotal=format_money(priced.subtotal),
            tax=format_money(priced.tax),
            total=format_money(priced.total),
            tax_rate=priced.tax_rate_display,
        )
    )


@app.put(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses={**ERROR_RESPONSES, 409: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Change order status",
)
async def update_order_status(
    order_id: str,
    body: StatusUpdate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    notifier: OrderNotifier = Depends(get_order_notifier),
) -> OrderResponse:
    change = await transition_order_status(db, order_id, body.status)

    restaurant = await db.get(Restaurant, change.order.restaurant_id)
    background_tasks.add_task(notifier.status_changed, change, restaurant.name if restaurant else None)

    return OrderResponse(order=OrderOut.model_validate(change.order))


@app.get(
    "/api/restaurants/{restaurant_id}/orders",
    response_model=OrderListResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_orders(
    restaurant_id: str,
    status: Optional[str] = Query(None, description="Comma-separated statuses, e.g. new,ready"),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    orders = await list_orders(db, restaurant_id, parse_status_filter(status), limit=limit)
    return OrderListResponse(
        orders=[OrderOut.model_validate(order) for order in orders],
        count=len(orders),
    )


@app.get(
    "/api/restaurants/{restaurant_id}/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order_details(
    restaurant_id: str,
    order_id: str,
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order(db, restaurant_id, order_id)
    return OrderResponse(order=OrderOut.model_validate(order))


@app.get(
    "/api/restaurants/{restaurant_id}/stats",
    response_model=StatsResponse,
    tags=["Stats"],
)
async def restaurant_stats(restaurant_id: str, db: AsyncSession = Depends(get_db)) -> StatsResponse:
    stats = await get_restaurant_stats(db, restaurant_id)
    return StatsResponse(stats=stats)


@app.get("/api/restaurants/{restaurant_id}/docs", tags=["Root"])
async def restaurant_api_docs(restaurant_id: str) -> dict[str, Any]:
    """Endpoint map for integrators of one restaurant."""
    return {
        "api_version": settings.app_version,
        "restaurant_id": restaurant_id,
        "endpoints": {
            "menu": {
                "get_full_menu": "GET /api/restaurants/:restaurantId/menu",
                "get_item": "GET /api/restaurants/:restaurantId/menu/:itemId",
                "update_item": "PUT /api/restaurants/:restaurantId/menu/:itemId",
                "toggle_availability": "PATCH /api/restaurants/:restaurantId/menu/:itemId/availability",
                "bulk_availability": "POST /api/restaurants/:restaurantId/menu/bulk-availability",
                "search": "GET /api/restaurants/:restaurantId/menu/search?q=burger",
                "customizations": "GET /api/menu-items/:itemId/customizations",
            },
            "orders": {
                "create_order": "POST /api/restaurants/:restaurantId/orders",
                "list_orders": "GET /api/restaurants/:restaurantId/orders?status=new,ready",
                "get_order": "GET /api/restaurants/:restaurantId/orders/:orderId",
                "update_status": "PUT /api/orders/:orderId/status",
            },
            "stats": {
                "get_stats": "GET /api/restaurants/:restaurantId/stats",
            },
            "realtime": {
                "kitchen_display": "WS /ws/kds?restaurant_id=:restaurantId",
            },
        },
    }


# =============================================================================
# KITCHEN DISPLAY WEBSOCKET
# =============================================================================

@app.websocket("/ws/kds")
async def kitchen_display_socket(
    websocket: WebSocket,
    restaurant_id: Optional[str] = None,
    hub: KitchenDisplayHub = Depends(get_kitchen_hub),
) -> None:
    """Kitchen displays stay connected here; incoming frames are ignored."""
    await hub.connect(websocket, restaurant_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        hub.disconnect(websocket)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "; ".join(problems) or "Invalid request"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("restaurant_orders.main:app", host=settings.api_host, port=settings.api_port)
