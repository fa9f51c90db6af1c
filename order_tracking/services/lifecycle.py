"""
Order Lifecycle

The single authority on which status may follow which, and on who may
trigger each change. Every caller (HTTP handlers, the order service,
scripts) goes through these functions; nothing else assigns ``status``.

Order:     pending -> preparing -> ready -> delivering -> delivered
           (any non-terminal) -> cancelled
Delivery:  pending -> assigned -> on_route -> delivered

All checks run before any attribute is touched, so a rejected call leaves
the order or delivery exactly as it was.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from order_tracking.core.exceptions import (
    ActorNotAuthorized,
    InvalidState,
    InvalidTransition,
)
from order_tracking.models import (
    Delivery,
    DeliveryStatus,
    Order,
    OrderStatus,
    OrderType,
    UserRole,
)
from order_tracking.services.geo.estimator import is_valid_coordinate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Who is attempting a lifecycle operation."""
    user_id: Optional[int]
    role: UserRole

    def __str__(self) -> str:
        return f"{self.role.value}#{self.user_id}"


# =============================================================================
# TRANSITION TABLES
# =============================================================================

ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERING, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERING: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

DELIVERY_TRANSITIONS: dict[DeliveryStatus, frozenset[DeliveryStatus]] = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.ASSIGNED}),
    DeliveryStatus.ASSIGNED: frozenset({DeliveryStatus.ON_ROUTE}),
    DeliveryStatus.ON_ROUTE: frozenset({DeliveryStatus.DELIVERED}),
    DeliveryStatus.DELIVERED: frozenset(),
}

TERMINAL_ORDER_STATUSES = frozenset(
    status for status, targets in ORDER_TRANSITIONS.items() if not targets
)
TERMINAL_DELIVERY_STATUSES = frozenset(
    status for status, targets in DELIVERY_TRANSITIONS.items() if not targets
)

ORDER_TRANSITION_ROLES: dict[tuple[OrderStatus, OrderStatus], frozenset[UserRole]] = {
    (OrderStatus.PENDING, OrderStatus.PREPARING): frozenset({UserRole.OWNER, UserRole.ADMIN}),
    (OrderStatus.PREPARING, OrderStatus.READY): frozenset({UserRole.OWNER, UserRole.ADMIN}),
    (OrderStatus.READY, OrderStatus.DELIVERING): frozenset(
        {UserRole.OWNER, UserRole.DELIVERY, UserRole.ADMIN}
    ),
    (OrderStatus.DELIVERING, OrderStatus.DELIVERED): frozenset({UserRole.DELIVERY, UserRole.ADMIN}),
}
CANCEL_ROLES = frozenset({UserRole.OWNER, UserRole.ADMIN})

DELIVERY_TRANSITION_ROLES: dict[tuple[DeliveryStatus, DeliveryStatus], frozenset[UserRole]] = {
    (DeliveryStatus.PENDING, DeliveryStatus.ASSIGNED): frozenset({UserRole.OWNER, UserRole.ADMIN}),
    (DeliveryStatus.ASSIGNED, DeliveryStatus.ON_ROUTE): frozenset({UserRole.DELIVERY, UserRole.ADMIN}),
    (DeliveryStatus.ON_ROUTE, DeliveryStatus.DELIVERED): frozenset({UserRole.DELIVERY, UserRole.ADMIN}),
}

# Order statuses in which the food has left (or is leaving) the kitchen
HANDED_OVER_STATUSES = frozenset({OrderStatus.READY, OrderStatus.DELIVERING})


def _utcnow(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _coerce_order_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown order status: {value!r}")


def _coerce_delivery_status(value) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown delivery status: {value!r}")


# =============================================================================
# ORDER TRANSITIONS
# =============================================================================

def order_transition_roles(order: Order, target: OrderStatus) -> frozenset[UserRole]:
    """
    Roles allowed to move ``order`` from its current status to ``target``.

    Assumes the edge itself is legal.
    """
    current = order.status
    if target == OrderStatus.CANCELLED:
        if current == OrderStatus.PENDING:
            return CANCEL_ROLES | {UserRole.CUSTOMER}
        return CANCEL_ROLES

    roles = ORDER_TRANSITION_ROLES[(current, target)]
    # Pickup and dine-in orders have no courier; staff hand them over
    if target == OrderStatus.DELIVERED and order.order_type != OrderType.DELIVERY:
        roles = roles | {UserRole.OWNER}
    return roles


def check_order_transition(
    order: Order,
    target,
    actor: Actor,
    delivery: Optional[Delivery] = None,
) -> OrderStatus:
    """
    Validate an order status change without applying it.

    Returns:
        OrderStatus: The validated target status

    Raises:
        InvalidTransition: Target is not the legal next status
        ActorNotAuthorized: Actor's role may not drive this transition
        InvalidState: A delivery order would be closed before its delivery
    """
    target = _coerce_order_status(target)
    current = order.status

    if current in TERMINAL_ORDER_STATUSES:
        raise InvalidTransition(f"Order #{order.id} is already {current.value}")
    if target == current:
        raise InvalidTransition(f"Order #{order.id} is already {current.value}")
    if target not in ORDER_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Order #{order.id} cannot move from {current.value} to {target.value}"
        )

    if actor.role not in order_transition_roles(order, target):
        raise ActorNotAuthorized(
            f"{actor.role.value} may not move order #{order.id} "
            f"from {current.value} to {target.value}"
        )

    if (
        target == OrderStatus.DELIVERED
        and order.order_type == OrderType.DELIVERY
        and delivery is not None
        and delivery.status != DeliveryStatus.DELIVERED
    ):
        raise InvalidState(
            f"Order #{order.id} cannot be delivered while its delivery is {delivery.status.value}"
        )

    return target


def transition_order(
    order: Order,
    target,
    actor: Actor,
    *,
    delivery: Optional[Delivery] = None,
    now: Optional[datetime] = None,
) -> Order:
    """
    Move an order to ``target`` if, and only if, the change is legal.

    Args:
        order: Order to transition (mutated in place on success)
        target: Requested status (enum or its string value)
        actor: Who requests the change
        delivery: The order's delivery, when one exists
        now: Timestamp to record; defaults to the current UTC time

    Returns:
        Order: The same order, with status and status_changed_at updated
    """
    target = check_order_transition(order, target, actor, delivery=delivery)
    previous = order.status

    order.status = target
    order.status_changed_at = _utcnow(now)

    logger.info(f"Order #{order.id}: {previous.value} -> {target.value} by {actor}")
    return order


# =============================================================================
# DELIVERY TRANSITIONS
# =============================================================================

def _check_courier_identity(delivery: Delivery, actor: Actor) -> None:
    if actor.role == UserRole.DELIVERY and actor.user_id != delivery.delivery_person_id:
        raise ActorNotAuthorized(
            f"Courier {actor.user_id} is not assigned to delivery #{delivery.id}"
        )


def check_delivery_transition(
    delivery: Delivery,
    target,
    actor: Actor,
    order: Optional[Order] = None,
) -> DeliveryStatus:
    """
    Validate a delivery status change without applying it.

    Returns:
        DeliveryStatus: The validated target status

    Raises:
        InvalidTransition: Target is not the legal next status
        ActorNotAuthorized: Actor may not drive this transition
        InvalidState: Preconditions on courier, position or parent order unmet
    """
    target = _coerce_delivery_status(target)
    current = delivery.status
    order = order if order is not None else delivery.order

    if current in TERMINAL_DELIVERY_STATUSES:
        raise InvalidTransition(f"Delivery #{delivery.id} is already {current.value}")
    if target == current:
        raise InvalidTransition(f"Delivery #{delivery.id} is already {current.value}")
    if target not in DELIVERY_TRANSITIONS[current]:
        raise InvalidTransition(
            f"Delivery #{delivery.id} cannot move from {current.value} to {target.value}"
        )

    if actor.role not in DELIVERY_TRANSITION_ROLES[(current, target)]:
        raise ActorNotAuthorized(
            f"{actor.role.value} may not move delivery #{delivery.id} "
            f"from {current.value} to {target.value}"
        )
    if target != DeliveryStatus.ASSIGNED:
        _check_courier_identity(delivery, actor)

    if order is not None and order.status == OrderStatus.CANCELLED:
        raise InvalidState(f"Order #{order.id} was cancelled")

    if target == DeliveryStatus.ASSIGNED and delivery.delivery_person_id is None:
        raise InvalidState(f"Delivery #{delivery.id} has no courier to assign")

    if (
        target == DeliveryStatus.ON_ROUTE
        and order is not None
        and order.status not in HANDED_OVER_STATUSES
    ):
        raise InvalidState(
            f"Order #{order.id} is {order.status.value}; the courier cannot leave yet"
        )

    if target == DeliveryStatus.DELIVERED:
        if not delivery.has_position:
            raise InvalidState(
                f"Delivery #{delivery.id} has no recorded courier position"
            )
        if order is not None and order.status != OrderStatus.DELIVERING:
            raise InvalidState(
                f"Order #{order.id} is {order.status.value}; "
                f"delivery cannot complete before the order is delivering"
            )

    return target


def transition_delivery(
    delivery: Delivery,
    target,
    actor: Actor,
    *,
    order: Optional[Order] = None,
    now: Optional[datetime] = None,
) -> Delivery:
    """
    Move a delivery to ``target`` if, and only if, the change is legal.

    Args:
        delivery: Delivery to transition (mutated in place on success)
        target: Requested status (enum or its string value)
        actor: Who requests the change
        order: Parent order; falls back to ``delivery.order``
        now: Timestamp to record; defaults to the current UTC time

    Returns:
        Delivery: The same delivery with status and status_changed_at updated
    """
    target = check_delivery_transition(delivery, target, actor, order=order)
    previous = delivery.status

    delivery.status = target
    delivery.status_changed_at = _utcnow(now)

    logger.info(f"Delivery #{delivery.id}: {previous.value} -> {target.value} by {actor}")
    return delivery


def assign_courier(
    delivery: Delivery,
    courier_id: int,
    actor: Actor,
    *,
    order: Optional[Order] = None,
    now: Optional[datetime] = None,
) -> Delivery:
    """
    Attach a courier and move the delivery from ``pending`` to ``assigned``.

    Validation runs against a delivery that already carries the courier, and
    nothing is written unless it passes.
    """
    previous_courier = delivery.delivery_person_id
    delivery.delivery_person_id = courier_id
    try:
        check_delivery_transition(delivery, DeliveryStatus.ASSIGNED, actor, order=order)
    except Exception:
        delivery.delivery_person_id = previous_courier
        raise
    return transition_delivery(delivery, DeliveryStatus.ASSIGNED, actor, order=order, now=now)


def record_courier_position(
    delivery: Delivery,
    latitude: float,
    longitude: float,
    *,
    order: Optional[Order] = None,
    now: Optional[datetime] = None,
) -> Delivery:
    """
    Overwrite the courier's last known position.

    Raises:
        InvalidState: Delivery is not on route, or its order was cancelled
        ValueError: Coordinates are out of range
    """
    if delivery.status != DeliveryStatus.ON_ROUTE:
        raise InvalidState(
            f"Delivery #{delivery.id} is {delivery.status.value}; "
            f"positions are only recorded while on_route"
        )
    order = order if order is not None else delivery.order
    if order is not None and order.status == OrderStatus.CANCELLED:
        raise InvalidState(f"Order #{order.id} was cancelled")
    if not is_valid_coordinate(latitude, longitude):
        raise ValueError(f"Coordinates out of range: ({latitude}, {longitude})")

    delivery.latitude = latitude
    delivery.longitude = longitude
    delivery.position_updated_at = _utcnow(now)

    logger.debug(f"Delivery #{delivery.id}: position ({latitude:.5f}, {longitude:.5f})")
    return delivery
