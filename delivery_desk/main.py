"""
FastAPI Application Entry Point

Delivery Desk - Hybrid Architecture
Runs on in-memory collaborators (development) or on PostgreSQL, Gemini
and Redis (staging/production).

Endpoints:
    - GET /api/delivery/orders: Filtered/sorted list view
    - GET /api/delivery/columns: One column per platform
    - POST /api/delivery/orders: Create from a cart
    - POST /api/delivery/scan: Read a receipt photo
    - POST /api/delivery/orders/from-scan: Create from a scanned receipt
    - POST /api/delivery/orders/{id}/advance: Next lifecycle status
    - DELETE /api/delivery/orders/{id}: Delete (requires confirm=true)
    - GET /api/delivery/notices: Recent notices
    - GET /api/menu: Menu catalog
    - GET /health: System health check
"""

import asyncio
import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Depends, Query, Request, UploadFile, File
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import redis

from delivery_desk.core.config import get_settings, setup_logging
from delivery_desk.core.exceptions import DeliveryError
from delivery_desk.database import get_engine, init_db
from delivery_desk.delivery import Cart, CommandResult, DeliveryManager
from delivery_desk.delivery.projection import ALL_PLATFORMS
from delivery_desk.schemas import (
    CommandResponse,
    DeliveryOrderCreate,
    ErrorResponse,
    ExtractedOrder,
    HealthResponse,
    MenuItem,
    NoticeResponse,
    Order,
    OrderListResponse,
    Platform,
    PLATFORM_STYLES,
    PlatformColumn,
    ScanOrderCreate,
    SortMode,
    StatusAdvanceRequest,
)
from delivery_desk.services.archive import DeliveryArchive, order_archive_row
from delivery_desk.services.extraction import get_extraction_service
from delivery_desk.services.notifications import get_notification_sink
from delivery_desk.services.orders import get_order_store
from delivery_desk.tasks import archive_delivered_order

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    "empty_cart": 400,
    "unknown_menu_item": 400,
    "extraction_error": 422,
    "order_not_found": 404,
    "invalid_transition": 409,
    "busy": 409,
    "confirmation_required": 428,
    "persistence_error": 502,
}


# =============================================================================
# COMPOSITION ROOT
# =============================================================================

async def archive_order(order: Order) -> None:
    """
    Archive a delivered order: in-process in development, through Celery otherwise.

    Both paths block (file lock and workbook I/O, or the broker round trip),
    so they run in a worker thread.
    """
    row = order_archive_row(order)
    if settings.is_development:
        result = await asyncio.to_thread(DeliveryArchive().archive_order, row)
        if not result["success"]:
            logger.warning(f"Order {order.id} not archived: {result['message']}")
    else:
        await asyncio.to_thread(archive_delivered_order.delay, row)


@lru_cache()
def get_delivery_manager() -> DeliveryManager:
    """The application's single delivery manager, wired to the configured services."""
    return DeliveryManager(
        store=get_order_store(),
        extraction_service=get_extraction_service(),
        notifier=get_notification_sink(),
        archiver=archive_order,
    )


def get_manager() -> DeliveryManager:
    """Dependency injection for FastAPI routes."""
    return get_delivery_manager()


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

    if settings.use_real_services:
        await init_db(get_engine())
        logger.info("✅ Database initialized")

        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    manager = get_delivery_manager()
    await manager.start()
    logger.info(f"✅ Order Store: {manager.store.provider_name}")
    logger.info(f"✅ Extraction Service: {manager.extraction_service.provider_name}")
    logger.info(f"✅ Notification Sink: {manager.notifier.provider_name}")
    logger.info(f"✅ {len(manager.orders)} active delivery order(s), {len(manager.menu)} menu item(s)")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await manager.stop()
    if settings.use_real_services:
        await get_engine().dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Delivery and takeaway order board: platform classification, "
        "status lifecycle, urgency scheduling and receipt scanning."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def raise_for_result(result: CommandResult) -> None:
    """Turn a failed command into the matching HTTP error."""
    if result.success:
        return
    status_code = ERROR_STATUS_CODES.get(result.error_code or "", 400)
    raise HTTPException(status_code=status_code, detail=result.error_message)


def build_cart(payload: DeliveryOrderCreate, manager: DeliveryManager) -> Cart:
    """Fill a fresh cart from a request; each request gets its own staging cart."""
    catalog = {item.id: item for item in manager.menu}
    cart = Cart(
        platform=payload.platform,
        external_reference=payload.external_reference or "",
        customer_name=payload.customer_name or "",
        customer_phone=payload.customer_phone or "",
        customer_address=payload.customer_address or "",
        requested_time=payload.requested_time or "",
        notes=payload.notes or "",
    )
    for line in payload.items:
        menu_item = catalog.get(line.menu_item_id)
        if menu_item is None:
            raise HTTPException(
                status_code=ERROR_STATUS_CODES["unknown_menu_item"],
                detail=f"Unknown menu item: {line.menu_item_id}",
            )
        cart_line = cart.add_item(menu_item, line.quantity)
        if line.notes:
            cart_line.notes = line.notes
    return cart


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🛵 Welcome to {settings.app_name}",
        "restaurant": settings.restaurant_name,
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
    manager: DeliveryManager = Depends(get_manager),
) -> HealthResponse:
    """Verify all system components are operational."""

    store_status = "healthy" if await manager.store.health_check() else "unhealthy"

    # Check Redis
    redis_status = "healthy"
    try:
        r = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
        r.close()
    except redis.RedisError as e:
        redis_status = f"unhealthy: {str(e)}"
        logger.error(f"Redis health check failed: {e}")

    extraction_status = "healthy" if await manager.extraction_service.health_check() else "unhealthy"
    notification_status = "healthy" if await manager.notifier.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [store_status, redis_status, extraction_status, notification_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        order_store=store_status,
        redis=redis_status,
        extraction_service=extraction_status,
        notification_service=notification_status,
        timestamp=datetime.now().isoformat(),
    )


@app.get("/api/menu", response_model=list[MenuItem], tags=["Menu"])
async def list_menu(manager: DeliveryManager = Depends(get_manager)) -> list[MenuItem]:
    """Menu catalog used to build carts."""
    return manager.menu


# =============================================================================
# DELIVERY BOARD ENDPOINTS
# =============================================================================

@app.get(
    "/api/delivery/orders",
    response_model=OrderListResponse,
    tags=["Delivery"],
    summary="List View",
)
async def list_orders(
    platform: str = Query(ALL_PLATFORMS, description="Platform value or ALL"),
    sort: SortMode = Query(SortMode.URGENCY),
    manager: DeliveryManager = Depends(get_manager),
) -> OrderListResponse:
    """Active delivery orders, filtered by platform and sorted by urgency or platform."""
    if platform != ALL_PLATFORMS:
        try:
            Platform(platform)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid platform. Options: {[ALL_PLATFORMS] + [p.value for p in Platform]}"
            )

    views = manager.list_view(platform, sort)
    return OrderListResponse(total=len(views), platform_filter=platform, sort=sort, orders=views)


@app.get(
    "/api/delivery/columns",
    response_model=list[PlatformColumn],
    tags=["Delivery"],
    summary="Platform Columns",
)
async def list_columns(manager: DeliveryManager = Depends(get_manager)) -> list[PlatformColumn]:
    """Active delivery orders grouped into one column per platform."""
    return [
        PlatformColumn(
            platform=platform,
            label=PLATFORM_STYLES[platform]["label"],
            color=PLATFORM_STYLES[platform]["color"],
            orders=views,
        )
        for platform, views in manager.columns().items()
    ]


@app.post(
    "/api/delivery/orders",
    response_model=CommandResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    tags=["Delivery"],
    summary="Create Order",
)
async def create_order(
    payload: DeliveryOrderCreate,
    manager: DeliveryManager = Depends(get_manager),
) -> CommandResponse:
    """Create a delivery or takeaway order from a cart."""
    logger.info(f"Creating {payload.platform.value} order with {len(payload.items)} line(s)")

    cart = build_cart(payload, manager)
    result = await manager.create_order(cart)
    raise_for_result(result)

    return CommandResponse(
        success=True,
        message=f"Order #{result.order.order_number} created",
        order=result.order,
    )


@app.post(
    "/api/delivery/scan",
    response_model=ExtractedOrder,
    responses={422: {"model": ErrorResponse}},
    tags=["Delivery"],
    summary="Scan Receipt",
)
async def scan_receipt(
    file: UploadFile = File(...),
    manager: DeliveryManager = Depends(get_manager),
) -> ExtractedOrder:
    """Read order data off a receipt photo. Nothing is stored yet."""
    image = await file.read()
    result = await manager.scan_receipt(image, file.content_type or "image/jpeg")
    raise_for_result(result)
    return result.extraction


@app.post(
    "/api/delivery/orders/from-scan",
    response_model=CommandResponse,
    tags=["Delivery"],
    summary="Create Order From Scan",
)
async def create_order_from_scan(
    payload: ScanOrderCreate,
    manager: DeliveryManager = Depends(get_manager),
) -> CommandResponse:
    """Create an order from a (possibly corrected) receipt extraction."""
    result = await manager.create_order_from_scan(payload.extraction, payload.platform)
    raise_for_result(result)

    return CommandResponse(
        success=True,
        message=f"Order #{result.order.order_number} created from receipt scan",
        order=result.order,
    )


@app.post(
    "/api/delivery/orders/{order_id}/advance",
    response_model=CommandResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    tags=["Delivery"],
    summary="Advance Status",
)
async def advance_order(
    order_id: str,
    payload: StatusAdvanceRequest,
    manager: DeliveryManager = Depends(get_manager),
) -> CommandResponse:
    """Move an order to the next status of its lifecycle."""
    result = await manager.advance(order_id, payload.status)
    raise_for_result(result)

    return CommandResponse(
        success=True,
        message=f"Order #{result.order.order_number} is now {result.order.status.value}",
        order=result.order,
    )


@app.delete(
    "/api/delivery/orders/{order_id}",
    response_model=CommandResponse,
    responses={404: {"model": ErrorResponse}, 428: {"model": ErrorResponse}},
    tags=["Delivery"],
    summary="Delete Order",
)
async def delete_order(
    order_id: str,
    confirm: bool = Query(False, description="Must be true to delete"),
    manager: DeliveryManager = Depends(get_manager),
) -> CommandResponse:
    """Delete an order permanently."""
    result = await manager.remove(order_id, confirmed=confirm)
    raise_for_result(result)
    return CommandResponse(success=True, message=f"Order {order_id} deleted")


@app.get(
    "/api/delivery/notices",
    response_model=list[NoticeResponse],
    tags=["Delivery"],
)
async def list_notices(
    limit: Optional[int] = Query(None, ge=1, le=200),
    manager: DeliveryManager = Depends(get_manager),
) -> list[dict[str, Any]]:
    """Most recent notices, newest last."""
    notices = manager.notifier.recent()
    if limit:
        notices = notices[-limit:]
    return [notice.to_dict() for notice in notices]


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(DeliveryError)
async def delivery_exception_handler(request: Request, exc: DeliveryError) -> JSONResponse:
    """Delivery errors that escaped a command result."""
    logger.warning(f"Delivery error on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=ERROR_STATUS_CODES.get(exc.code, 400),
        content={"success": False, "error": exc.code, "detail": exc.message},
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
