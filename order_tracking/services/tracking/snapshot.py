"""
Tracking snapshot: a read-only projection of an order, its delivery and the
consumer's position at one point in time. Never persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from order_tracking.models import DeliveryStatus, OrderStatus, OrderType
from order_tracking.schemas import OrderResponse
from order_tracking.services.geo.base import Position


@dataclass(frozen=True)
class TrackingSnapshot:
    """
    Attributes:
        order_id: Tracked order
        order_status: Order status at fetch time
        order_type: Fulfilment mode
        delivery_id: Delivery record, if the order has one
        delivery_status: Delivery status at fetch time
        courier_id: Assigned courier, if any
        courier_latitude: Courier's last reported latitude
        courier_longitude: Courier's last reported longitude
        consumer_position: Consumer's position when the snapshot was built
        sequence: Issue order of the fetch; later fetches carry larger numbers
        fetched_at: When the snapshot was built
    """
    order_id: int
    order_status: OrderStatus
    order_type: OrderType = OrderType.DELIVERY
    delivery_id: Optional[int] = None
    delivery_status: Optional[DeliveryStatus] = None
    courier_id: Optional[int] = None
    courier_latitude: Optional[float] = None
    courier_longitude: Optional[float] = None
    consumer_position: Optional[Position] = None
    sequence: int = 0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def has_courier_position(self) -> bool:
        return self.courier_latitude is not None and self.courier_longitude is not None

    @property
    def has_consumer_position(self) -> bool:
        return self.consumer_position is not None

    @classmethod
    def from_order(
        cls,
        order,
        consumer_position: Optional[Position] = None,
        sequence: int = 0,
    ) -> "TrackingSnapshot":
        """
        Build a snapshot from an order object.

        Accepts anything shaped like ``models.Order`` or ``schemas.OrderResponse``
        (``status``, ``order_type`` and an optional nested ``delivery``).
        """
        delivery = order.delivery
        return cls(
            order_id=order.id,
            order_status=OrderStatus(order.status),
            order_type=OrderType(order.order_type),
            delivery_id=delivery.id if delivery is not None else None,
            delivery_status=DeliveryStatus(delivery.status) if delivery is not None else None,
            courier_id=delivery.delivery_person_id if delivery is not None else None,
            courier_latitude=delivery.latitude if delivery is not None else None,
            courier_longitude=delivery.longitude if delivery is not None else None,
            consumer_position=consumer_position,
            sequence=sequence,
        )

    @classmethod
    def from_payload(
        cls,
        payload: dict,
        consumer_position: Optional[Position] = None,
        sequence: int = 0,
    ) -> "TrackingSnapshot":
        """
        Build a snapshot from an order as returned by ``GET /api/orders/mine``.

        Raises:
            pydantic.ValidationError: Payload does not describe an order
        """
        order = OrderResponse.model_validate(payload)
        return cls.from_order(order, consumer_position=consumer_position, sequence=sequence)
