"""
SQLAlchemy Database Models

Persistent entities behind the order lifecycle:
- Orders with their line items and fulfilment mode
- Deliveries with courier assignment and last known position
- Status change audit trail
- Minimal users, restaurants and menu items the lifecycle depends on

Both Order and Delivery carry a version column. Every UPDATE is conditional
on the version that was read, so two actors can never apply conflicting
transitions to the same row.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from order_tracking.database import Base
import enum


class UserRole(str, enum.Enum):
    """Roles an actor can hold."""
    CUSTOMER = "customer"
    OWNER = "owner"
    DELIVERY = "delivery"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    """Order status workflow."""
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERING = "delivering"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(str, enum.Enum):
    """How the order is fulfilled."""
    PICKUP = "pickup"
    DELIVERY = "delivery"
    DINE_IN = "dine_in"


class DeliveryStatus(str, enum.Enum):
    """Delivery status workflow."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    ON_ROUTE = "on_route"
    DELIVERED = "delivered"


class StatusEntity(str, enum.Enum):
    """Kind of row a status change was applied to."""
    ORDER = "order"
    DELIVERY = "delivery"


class User(Base):
    """
    Platform user. Authentication lives elsewhere; the lifecycle only needs
    the role and whether the account is active.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True, unique=True)
    phone = Column(String(20), nullable=True)
    role = Column(Enum(UserRole), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<User #{self.id} - {self.name} - {self.role.value}>"


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    menu_items = relationship("MenuItem", back_populates="restaurant")

    def __repr__(self):
        return f"<Restaurant #{self.id} - {self.name}>"


class MenuItem(Base):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    restaurant = relationship("Restaurant", back_populates="menu_items")

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
    )

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price:.2f}>"


class Order(Base):
    """
    Customer order.

    Created atomically with its line items at checkout. Only the status
    (and its change timestamp) is mutated afterwards; orders are never
    deleted, only terminated through ``cancelled`` or ``delivered``.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)

    order_type = Column(
        Enum(OrderType),
        default=OrderType.DELIVERY,
        nullable=False,
        index=True
    )
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )
    total_price = Column(Float, nullable=False)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    status_changed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    delivery = relationship("Delivery", back_populates="order", uselist=False)
    restaurant = relationship("Restaurant")

    __table_args__ = (
        CheckConstraint("total_price >= 0", name="ck_orders_total_non_negative"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Order #{self.id} - {self.order_type.value} - {self.status.value}>"


class OrderItem(Base):
    """Single line of an order, priced at checkout time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("menu_items.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    preferences = Column(Text, nullable=True)

    order = relationship("Order", back_populates="items")
    item = relationship("MenuItem")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )


class Delivery(Base):
    """
    Delivery record of a ``delivery``-mode order.

    Latitude/longitude hold the courier's last reported position and are
    only written while the delivery is ``on_route``.
    """
    __tablename__ = "deliveries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, unique=True)
    delivery_person_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    status = Column(
        Enum(DeliveryStatus),
        default=DeliveryStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # COURIER POSITION
    # =========================================================================
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    position_updated_at = Column(DateTime(timezone=True), nullable=True)

    # =========================================================================
    # TIMESTAMPS
    # =========================================================================
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    status_changed_at = Column(DateTime(timezone=True), nullable=True)

    version = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="delivery")
    delivery_person = relationship("User")

    __mapper_args__ = {"version_id_col": version}

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def __repr__(self):
        return f"<Delivery #{self.id} - order #{self.order_id} - {self.status.value}>"


class StatusChange(Base):
    """
    Audit trail of applied transitions.

    One row per successful order or delivery status change, written in the
    same transaction as the change itself.
    """
    __tablename__ = "status_changes"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    entity = Column(Enum(StatusEntity), nullable=False)
    entity_id = Column(Integer, nullable=False, index=True)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    actor_id = Column(Integer, nullable=True)
    actor_role = Column(Enum(UserRole), nullable=True)
    changed_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<StatusChange {self.entity.value} #{self.entity_id}: {self.from_status} -> {self.to_status}>"
