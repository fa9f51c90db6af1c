"""
Tracking Session

Holds the live distance/ETA view of one order. It performs no I/O and owns
no timers: the tracker hands it snapshots and calls ``tick()`` once per
second. Between snapshots the countdown decreases locally; every accepted
snapshot replaces it with a freshly computed estimate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

from order_tracking.models import DeliveryStatus, OrderStatus
from order_tracking.services.geo.estimator import (
    AVERAGE_COURIER_SPEED_KMH,
    distance_km,
    estimated_seconds,
    format_countdown,
)
from order_tracking.services.tracking.snapshot import TrackingSnapshot

logger = logging.getLogger(__name__)


class DisplayState(str, Enum):
    WAITING = "waiting"
    AWAITING = "awaiting"
    TRACKING = "tracking"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_DISPLAY_STATES = frozenset({DisplayState.COMPLETED, DisplayState.CANCELLED})

ORDER_STATUS_LABELS = {
    OrderStatus.PENDING: "order placed, waiting for the restaurant",
    OrderStatus.PREPARING: "restaurant is preparing your order",
    OrderStatus.READY: "order is ready",
    OrderStatus.DELIVERING: "order is on its way",
}


@dataclass(frozen=True)
class TrackingDisplay:
    """What the consumer currently sees for the tracked order."""
    state: DisplayState
    label: str
    remaining_seconds: Optional[int] = None
    distance_km: Optional[float] = None
    order_status: Optional[OrderStatus] = None
    delivery_status: Optional[DeliveryStatus] = None
    stale: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_DISPLAY_STATES


def awaiting_label(snapshot: TrackingSnapshot) -> str:
    """Label for snapshots that carry no live estimate."""
    if snapshot.delivery_status == DeliveryStatus.ON_ROUTE:
        return "courier on the way, locating"
    # Older records mark an assigned courier only through delivery_person_id
    if snapshot.delivery_status == DeliveryStatus.ASSIGNED or (
        snapshot.delivery_status == DeliveryStatus.PENDING and snapshot.courier_id is not None
    ):
        return "assigned, awaiting pickup"
    if snapshot.delivery_status == DeliveryStatus.PENDING and snapshot.order_status == OrderStatus.READY:
        return "order is ready, waiting for a courier"
    return ORDER_STATUS_LABELS.get(snapshot.order_status, snapshot.order_status.value)


class TrackingSession:
    """
    Live ETA state for one order.

    Attributes:
        last_snapshot: Most recent accepted snapshot
        last_computed_eta_seconds: Estimate computed from that snapshot
        ticking_since: When the current countdown baseline was set
        remaining_seconds: Locally ticked countdown
        distance_km: Courier-to-consumer distance from the last estimate
        stale: True when the latest refresh failed
    """

    def __init__(
        self,
        speed_kmh: float = AVERAGE_COURIER_SPEED_KMH,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.speed_kmh = speed_kmh
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self.last_snapshot: Optional[TrackingSnapshot] = None
        self.last_computed_eta_seconds: Optional[int] = None
        self.ticking_since: Optional[datetime] = None
        self.remaining_seconds: Optional[int] = None
        self.distance_km: Optional[float] = None
        self.stale = False

        self._state = DisplayState.WAITING
        self._label = "waiting for order status"

    @property
    def is_ticking(self) -> bool:
        return self.ticking_since is not None

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_DISPLAY_STATES

    @property
    def display(self) -> TrackingDisplay:
        label = self._label
        if self._state == DisplayState.TRACKING:
            label = format_countdown(self.remaining_seconds)
        snapshot = self.last_snapshot
        return TrackingDisplay(
            state=self._state,
            label=label,
            remaining_seconds=self.remaining_seconds,
            distance_km=self.distance_km,
            order_status=snapshot.order_status if snapshot else None,
            delivery_status=snapshot.delivery_status if snapshot else None,
            stale=self.stale,
        )

    def on_snapshot_received(self, snapshot: TrackingSnapshot) -> bool:
        """
        Reconcile with a freshly fetched snapshot.

        Snapshots older than the last accepted one (by sequence) are
        discarded, as is anything arriving after a terminal state.

        Returns:
            bool: True if the snapshot was applied
        """
        if self.is_terminal:
            logger.debug(f"Order #{snapshot.order_id}: ignoring snapshot after terminal state")
            return False
        if self.last_snapshot is not None and snapshot.sequence <= self.last_snapshot.sequence:
            logger.debug(
                f"Order #{snapshot.order_id}: discarding snapshot {snapshot.sequence} "
                f"(already at {self.last_snapshot.sequence})"
            )
            return False

        self.last_snapshot = snapshot
        self.stale = False

        if snapshot.order_status == OrderStatus.CANCELLED:
            self._finish(DisplayState.CANCELLED, "order cancelled")
        elif (
            snapshot.delivery_status == DeliveryStatus.DELIVERED
            or snapshot.order_status == OrderStatus.DELIVERED
        ):
            self._finish(DisplayState.COMPLETED, "delivered")
        elif (
            snapshot.delivery_status == DeliveryStatus.ON_ROUTE
            and snapshot.has_courier_position
            and snapshot.has_consumer_position
        ):
            self._reset_baseline(snapshot)
        else:
            self._stop_ticking()
            self.distance_km = None
            self.remaining_seconds = None
            self._state = DisplayState.AWAITING
            self._label = awaiting_label(snapshot)

        return True

    def tick(self) -> TrackingDisplay:
        """Advance the local countdown by one second, floored at zero."""
        if self.is_ticking and self.remaining_seconds is not None:
            self.remaining_seconds = max(0, self.remaining_seconds - 1)
        return self.display

    def mark_stale(self) -> None:
        """Keep the current estimate but flag it as not refreshed."""
        self.stale = True

    def _reset_baseline(self, snapshot: TrackingSnapshot) -> None:
        consumer = snapshot.consumer_position
        distance = distance_km(
            snapshot.courier_latitude,
            snapshot.courier_longitude,
            consumer.latitude,
            consumer.longitude,
        )
        eta = estimated_seconds(distance, self.speed_kmh)

        self.distance_km = distance
        self.last_computed_eta_seconds = eta
        self.remaining_seconds = eta
        self.ticking_since = self._clock()
        self._state = DisplayState.TRACKING

        logger.debug(f"Order #{snapshot.order_id}: {distance:.2f} km, eta {eta}s")

    def _stop_ticking(self) -> None:
        self.ticking_since = None

    def _finish(self, state: DisplayState, label: str) -> None:
        self._stop_ticking()
        self.remaining_seconds = None
        self._state = state
        self._label = label
        logger.info(f"Order #{self.last_snapshot.order_id}: tracking finished ({state.value})")
