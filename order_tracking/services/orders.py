"""
Order Service

Persistence around the lifecycle rules: checkout, role-scoped listings and
status changes for orders and deliveries.

Each write goes through ``services.lifecycle`` first and is then committed
with the row's version as a guard (``version_id_col``). If another request
changed the row in the meantime the UPDATE matches nothing, SQLAlchemy
raises ``StaleDataError`` and the whole transaction is rolled back and
reported as ``ConcurrentUpdate``.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from order_tracking.core.exceptions import (
    ActorNotAuthorized,
    ConcurrentUpdate,
    InvalidState,
    LifecycleError,
    NotFoundError,
)
from order_tracking.models import (
    Delivery,
    DeliveryStatus,
    MenuItem,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Restaurant,
    StatusChange,
    StatusEntity,
    User,
    UserRole,
)
from order_tracking.schemas import OrderCreate
from order_tracking.services import lifecycle
from order_tracking.services.lifecycle import Actor

logger = logging.getLogger(__name__)


class OrderService:
    """
    Unit of work over one ``AsyncSession``.

    Example:
        >>> service = OrderService(db)
        >>> order = await service.update_order_status(12, "preparing", actor)
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _order_query():
        return (
            select(Order)
            .options(
                selectinload(Order.items),
                selectinload(Order.delivery),
                selectinload(Order.restaurant),
            )
            .execution_options(populate_existing=True)
        )

    async def get_order(self, order_id: int) -> Order:
        result = await self.db.execute(self._order_query().where(Order.id == order_id))
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order #{order_id} not found")
        return order

    async def get_order_for(self, order_id: int, actor: Actor) -> Order:
        """Load an order the actor is allowed to see; hidden orders read as missing."""
        order = await self.get_order(order_id)
        if not self._is_visible(order, actor):
            raise NotFoundError(f"Order #{order_id} not found")
        return order

    async def get_delivery(self, delivery_id: int) -> Delivery:
        result = await self.db.execute(
            select(Delivery)
            .options(selectinload(Delivery.order))
            .where(Delivery.id == delivery_id)
            .execution_options(populate_existing=True)
        )
        delivery = result.scalar_one_or_none()
        if delivery is None:
            raise NotFoundError(f"Delivery #{delivery_id} not found")
        return delivery

    @staticmethod
    def _is_visible(order: Order, actor: Actor) -> bool:
        if actor.role == UserRole.ADMIN:
            return True
        if actor.role == UserRole.CUSTOMER:
            return order.customer_id == actor.user_id
        if actor.role == UserRole.OWNER:
            return order.restaurant is not None and order.restaurant.owner_id == actor.user_id
        return order.delivery is not None and order.delivery.delivery_person_id == actor.user_id

    async def list_orders_for(self, actor: Actor) -> list[Order]:
        """
        Orders visible to the actor, newest first.

        customer -> own orders; owner -> orders of owned restaurants;
        delivery -> orders whose delivery is assigned to them; admin -> all.
        """
        query = self._order_query().order_by(Order.created_at.desc(), Order.id.desc())

        if actor.role == UserRole.CUSTOMER:
            query = query.where(Order.customer_id == actor.user_id)
        elif actor.role == UserRole.OWNER:
            query = query.join(Restaurant, Order.restaurant_id == Restaurant.id).where(
                Restaurant.owner_id == actor.user_id
            )
        elif actor.role == UserRole.DELIVERY:
            query = query.join(Delivery, Delivery.order_id == Order.id).where(
                Delivery.delivery_person_id == actor.user_id
            )

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_deliveries_for(self, actor: Actor) -> list[Delivery]:
        result = await self.db.execute(
            select(Delivery)
            .where(Delivery.delivery_person_id == actor.user_id)
            .order_by(Delivery.id.desc())
        )
        return list(result.scalars().all())

    async def list_available_couriers(self) -> list[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == UserRole.DELIVERY, User.is_active.is_(True))
            .order_by(User.name)
        )
        return list(result.scalars().all())

    # =========================================================================
    # CHECKOUT
    # =========================================================================

    async def create_order(self, actor: Actor, data: OrderCreate) -> Order:
        """
        Create an order and its line items in one transaction.

        Prices are taken from the menu, never from the request; the stored
        total is the sum of unit price times quantity.

        Raises:
            ActorNotAuthorized: Actor is not a customer
            NotFoundError: Restaurant or a menu item does not exist
            InvalidState: An item is unavailable or belongs to another restaurant
        """
        if actor.role != UserRole.CUSTOMER:
            raise ActorNotAuthorized("Only customers can place orders")

        restaurant = await self.db.get(Restaurant, data.restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant #{data.restaurant_id} not found")

        item_ids = {line.item_id for line in data.items}
        result = await self.db.execute(select(MenuItem).where(MenuItem.id.in_(item_ids)))
        menu = {item.id: item for item in result.scalars().all()}

        order_items = []
        for line in data.items:
            menu_item = menu.get(line.item_id)
            if menu_item is None:
                raise NotFoundError(f"Menu item #{line.item_id} not found")
            if menu_item.restaurant_id != restaurant.id:
                raise InvalidState(
                    f"Menu item #{menu_item.id} does not belong to restaurant #{restaurant.id}"
                )
            if not menu_item.is_available:
                raise InvalidState(f"Menu item #{menu_item.id} is not available")
            order_items.append(
                OrderItem(
                    item_id=menu_item.id,
                    quantity=line.quantity,
                    unit_price=menu_item.price,
                    preferences=line.preferences or None,
                )
            )

        total = round(sum(item.unit_price * item.quantity for item in order_items), 2)
        order = Order(
            customer_id=actor.user_id,
            restaurant_id=restaurant.id,
            order_type=data.order_type,
            status=OrderStatus.PENDING,
            total_price=total,
            items=order_items,
        )
        self.db.add(order)
        await self.db.commit()

        logger.info(
            f"Order #{order.id} created for customer #{actor.user_id} "
            f"({data.order_type.value}, {len(order_items)} lines, total {total:.2f})"
        )
        return await self.get_order(order.id)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def _audit(
        self,
        entity: StatusEntity,
        entity_id: int,
        previous,
        current,
        actor: Actor,
        changed_at: Optional[datetime],
    ) -> None:
        self.db.add(
            StatusChange(
                entity=entity,
                entity_id=entity_id,
                from_status=previous.value,
                to_status=current.value,
                actor_id=actor.user_id,
                actor_role=actor.role,
                changed_at=changed_at,
            )
        )

    async def _commit(self, what: str) -> None:
        try:
            await self.db.commit()
        except StaleDataError:
            await self.db.rollback()
            logger.warning(f"{what} was changed concurrently; transaction rolled back")
            raise ConcurrentUpdate(f"{what} was changed by another request; reload and retry")

    async def update_order_status(self, order_id: int, target, actor: Actor) -> Order:
        """
        Apply an order transition.

        Accepting a delivery-mode order (``pending -> preparing``) also
        creates its pending Delivery in the same transaction. Orders the
        actor cannot see (another customer's, another restaurant's) read as
        missing.
        """
        order = await self.get_order_for(order_id, actor)
        previous = order.status

        lifecycle.transition_order(order, target, actor, delivery=order.delivery)
        self._audit(StatusEntity.ORDER, order.id, previous, order.status, actor, order.status_changed_at)

        if (
            order.status == OrderStatus.PREPARING
            and order.order_type == OrderType.DELIVERY
            and order.delivery is None
        ):
            order.delivery = Delivery(status=DeliveryStatus.PENDING)
            logger.info(f"Order #{order.id}: delivery record created")

        await self._commit(f"Order #{order_id}")
        return await self.get_order(order_id)

    async def assign_courier(self, order_id: int, courier_id: int, actor: Actor) -> Delivery:
        order = await self.get_order_for(order_id, actor)
        delivery = order.delivery
        if delivery is None:
            if order.order_type != OrderType.DELIVERY:
                raise InvalidState(f"Order #{order_id} is a {order.order_type.value} order")
            raise InvalidState(f"Order #{order_id} has not been accepted by the restaurant yet")

        courier = await self.db.get(User, courier_id)
        if courier is None or courier.role != UserRole.DELIVERY or not courier.is_active:
            raise InvalidState(f"User #{courier_id} is not an active courier")

        previous = delivery.status
        lifecycle.assign_courier(delivery, courier_id, actor, order=order)
        self._audit(
            StatusEntity.DELIVERY, delivery.id, previous, delivery.status, actor, delivery.status_changed_at
        )

        await self._commit(f"Delivery #{delivery.id}")
        return await self.get_delivery(delivery.id)

    async def update_delivery_status(self, delivery_id: int, target, actor: Actor) -> Delivery:
        """
        Apply a delivery transition and keep the parent order in step.

        ``on_route`` advances a ``ready`` order to ``delivering``;
        ``delivered`` closes the order as ``delivered``. Both rows are
        written in one transaction or not at all.
        """
        delivery = await self.get_delivery(delivery_id)
        order = delivery.order
        previous = delivery.status

        lifecycle.transition_delivery(delivery, target, actor, order=order)
        try:
            self._audit(
                StatusEntity.DELIVERY, delivery.id, previous, delivery.status, actor, delivery.status_changed_at
            )

            follow_up = None
            if delivery.status == DeliveryStatus.ON_ROUTE and order.status == OrderStatus.READY:
                follow_up = OrderStatus.DELIVERING
            elif delivery.status == DeliveryStatus.DELIVERED:
                follow_up = OrderStatus.DELIVERED

            if follow_up is not None:
                previous_order = order.status
                lifecycle.transition_order(order, follow_up, actor, delivery=delivery)
                self._audit(
                    StatusEntity.ORDER, order.id, previous_order, order.status, actor, order.status_changed_at
                )
        except LifecycleError:
            await self.db.rollback()
            raise

        await self._commit(f"Delivery #{delivery_id}")
        return await self.get_delivery(delivery_id)

    async def record_position(
        self,
        delivery_id: int,
        latitude: float,
        longitude: float,
        actor: Actor,
    ) -> Delivery:
        """Store the courier's position; only the assigned courier or an admin may report it."""
        delivery = await self.get_delivery(delivery_id)

        is_assigned_courier = (
            actor.role == UserRole.DELIVERY and actor.user_id == delivery.delivery_person_id
        )
        if not (is_assigned_courier or actor.role == UserRole.ADMIN):
            raise ActorNotAuthorized(f"{actor} may not report positions for delivery #{delivery_id}")

        lifecycle.record_courier_position(delivery, latitude, longitude, order=delivery.order)

        await self._commit(f"Delivery #{delivery_id}")
        return delivery
