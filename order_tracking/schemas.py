"""
Pydantic Schemas for Request/Response Validation

Request bodies for checkout, status changes, courier assignment and
position reports; response shapes for orders with their nested line items
and delivery, tracking estimates, health and errors.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from order_tracking.models import DeliveryStatus, OrderStatus, OrderType


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class OrderItemCreate(BaseModel):
    """Single item in an order."""
    item_id: int = Field(..., ge=1, examples=[3])
    quantity: int = Field(..., ge=1, le=99, examples=[2])
    preferences: Optional[str] = Field(None, max_length=200, examples=["no onions"])


class OrderCreate(BaseModel):
    """Request schema for checking out a new order."""
    restaurant_id: int = Field(..., ge=1, examples=[1])
    order_type: OrderType = Field(default=OrderType.DELIVERY, examples=["delivery"])
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderStatusUpdate(BaseModel):
    """Requested order status."""
    status: OrderStatus = Field(..., examples=["preparing"])


class DeliveryStatusUpdate(BaseModel):
    """Requested delivery status."""
    status: DeliveryStatus = Field(..., examples=["on_route"])


class DeliveryAssignRequest(BaseModel):
    """Attach a courier to an order's delivery."""
    order_id: int = Field(..., ge=1)
    delivery_person_id: int = Field(..., ge=1)


class CourierPositionUpdate(BaseModel):
    """Position reported by the assigned courier."""
    latitude: float = Field(..., ge=-90, le=90, examples=[40.7411])
    longitude: float = Field(..., ge=-180, le=180, examples=[-73.9897])


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class OrderItemResponse(BaseModel):
    id: int
    item_id: int
    quantity: int
    unit_price: float
    preferences: Optional[str] = None

    class Config:
        from_attributes = True


class DeliveryResponse(BaseModel):
    """Response schema for a delivery."""
    id: int
    order_id: int
    delivery_person_id: Optional[int] = None
    status: DeliveryStatus
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    position_updated_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    """Response schema for a single order with nested items and delivery."""
    id: int
    customer_id: int
    restaurant_id: int
    order_type: OrderType
    status: OrderStatus
    total_price: float
    created_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    items: List[OrderItemResponse]
    delivery: Optional[DeliveryResponse] = None

    class Config:
        from_attributes = True


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderResponse]


class CourierResponse(BaseModel):
    """An active delivery-role user."""
    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class TrackingResponse(BaseModel):
    """Distance/ETA computed server-side for one order."""
    order_id: int
    order_status: OrderStatus
    delivery_status: Optional[DeliveryStatus] = None
    tracking: bool
    distance_km: Optional[float] = None
    estimated_seconds: Optional[int] = None
    label: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    database: str
    location_provider: str
    timestamp: datetime
