"""
FastAPI Application Entry Point

Order Tracking Service - order lifecycle and live delivery tracking.

Endpoints:
    - POST /api/orders: Customer checkout
    - GET /api/orders/mine: Role-scoped order listing
    - PUT /api/orders/{id}/status: Order status transition
    - GET /api/orders/{id}/tracking: Server-side distance/ETA
    - POST /api/deliveries/assign: Courier assignment
    - PUT /api/deliveries/{id}/status: Delivery status transition
    - PUT /api/deliveries/{id}/position: Courier position report
    - GET /health: System health check

Run: python -m order_tracking.main
"""

import logging
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

# Internal imports
from order_tracking.core.config import get_settings, setup_logging
from order_tracking.core.exceptions import LifecycleError, NotFoundError
from order_tracking.database import get_db, init_db, engine
from order_tracking.deps import get_actor, get_order_service
from order_tracking.schemas import (
    CourierPositionUpdate,
    CourierResponse,
    DeliveryAssignRequest,
    DeliveryResponse,
    DeliveryStatusUpdate,
    ErrorResponse,
    HealthResponse,
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
    TrackingResponse,
)
from order_tracking.services.geo import Position, get_location_provider
from order_tracking.services.lifecycle import Actor
from order_tracking.services.orders import OrderService
from order_tracking.services.tracking import DisplayState, TrackingSession, TrackingSnapshot

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


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

    location_provider = get_location_provider()
    logger.info(f"✅ Location Provider: {location_provider.provider_name}")
    logger.info("✅ Application ready!")

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Order lifecycle state machine and live delivery tracking.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


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
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    db_status = "healthy"
    try:
        await db.execute(select(func.now()))
    except Exception as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    location_provider = get_location_provider()
    location_status = "healthy" if await location_provider.health_check() else "unhealthy"

    overall = "operational" if all(
        s == "healthy" for s in [db_status, location_status]
    ) else "degraded"

    return HealthResponse(
        status=overall,
        database=db_status,
        location_provider=location_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# ORDER API ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderResponse,
    status_code=201,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Checkout",
)
async def create_order(
    order_data: OrderCreate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Create an order with its line items in one transaction."""
    order = await service.create_order(actor, order_data)
    return OrderResponse.model_validate(order)


@app.get(
    "/api/orders/mine",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List My Orders",
)
async def list_my_orders(
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """Orders visible to the caller, newest first, with items and delivery."""
    orders = await service.list_orders_for(actor)
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.model_validate(order) for order in orders],
    )


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
)
async def get_order(
    order_id: int,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a specific order by ID."""
    order = await service.get_order_for(order_id, actor)
    return OrderResponse.model_validate(order)


@app.put(
    "/api/orders/{order_id}/status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    tags=["Orders"],
    summary="Change Order Status",
)
async def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Apply one order transition; illegal or unauthorized changes are rejected."""
    order = await service.update_order_status(order_id, update.status, actor)
    return OrderResponse.model_validate(order)


@app.get(
    "/api/orders/{order_id}/tracking",
    response_model=TrackingResponse,
    responses=ERROR_RESPONSES,
    tags=["Tracking"],
    summary="Distance and ETA",
)
async def order_tracking(
    order_id: int,
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> TrackingResponse:
    """
    Compute the courier's distance and ETA to the given consumer position.

    Same rules as the client-side tracker, evaluated once on the server.
    """
    order = await service.get_order_for(order_id, actor)

    session = TrackingSession(speed_kmh=settings.courier_speed_kmh)
    session.on_snapshot_received(
        TrackingSnapshot.from_order(order, consumer_position=Position(latitude, longitude))
    )
    display = session.display

    return TrackingResponse(
        order_id=order.id,
        order_status=order.status,
        delivery_status=display.delivery_status,
        tracking=display.state == DisplayState.TRACKING,
        distance_km=round(display.distance_km, 2) if display.distance_km is not None else None,
        estimated_seconds=display.remaining_seconds,
        label=display.label,
    )


# =============================================================================
# DELIVERY API ENDPOINTS
# =============================================================================

@app.get(
    "/api/couriers/available",
    response_model=list[CourierResponse],
    tags=["Deliveries"],
)
async def available_couriers(
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> list[CourierResponse]:
    """Active delivery-role users that can be assigned."""
    couriers = await service.list_available_couriers()
    return [CourierResponse.model_validate(courier) for courier in couriers]


@app.post(
    "/api/deliveries/assign",
    response_model=DeliveryResponse,
    responses=ERROR_RESPONSES,
    tags=["Deliveries"],
    summary="Assign Courier",
)
async def assign_delivery(
    request: DeliveryAssignRequest,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> DeliveryResponse:
    delivery = await service.assign_courier(request.order_id, request.delivery_person_id, actor)
    return DeliveryResponse.model_validate(delivery)


@app.get(
    "/api/deliveries/mine",
    response_model=list[DeliveryResponse],
    tags=["Deliveries"],
)
async def my_deliveries(
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> list[DeliveryResponse]:
    """Deliveries assigned to the calling courier."""
    deliveries = await service.list_deliveries_for(actor)
    return [DeliveryResponse.model_validate(delivery) for delivery in deliveries]


@app.put(
    "/api/deliveries/{delivery_id}/status",
    response_model=DeliveryResponse,
    responses=ERROR_RESPONSES,
    tags=["Deliveries"],
    summary="Change Delivery Status",
)
async def update_delivery_status(
    delivery_id: int,
    update: DeliveryStatusUpdate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> DeliveryResponse:
    delivery = await service.update_delivery_status(delivery_id, update.status, actor)
    return DeliveryResponse.model_validate(delivery)


@app.put(
    "/api/deliveries/{delivery_id}/position",
    response_model=DeliveryResponse,
    responses=ERROR_RESPONSES,
    tags=["Deliveries"],
    summary="Report Courier Position",
)
async def report_position(
    delivery_id: int,
    position: CourierPositionUpdate,
    actor: Actor = Depends(get_actor),
    service: OrderService = Depends(get_order_service),
) -> DeliveryResponse:
    delivery = await service.record_position(
        delivery_id, position.latitude, position.longitude, actor
    )
    return DeliveryResponse.model_validate(delivery)


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(LifecycleError)
async def lifecycle_exception_handler(request: Request, exc: LifecycleError) -> JSONResponse:
    """Rejected transitions go back to the actor that attempted them."""
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(error=exc.code, detail=str(exc)).model_dump(),
    )


@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.http_status,
        content=ErrorResponse(error=exc.code, detail=str(exc)).model_dump(),
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

    uvicorn.run(
        "order_tracking.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
    )
