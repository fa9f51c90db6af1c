"""
Live delivery tracking.

Usage:
    from order_tracking.services.tracking import DeliveryTracker, OrdersApiClient

    async with OrdersApiClient(user_id=7, role=UserRole.CUSTOMER) as client:
        async with DeliveryTracker(42, client, get_location_provider(), on_update=print) as tracker:
            await tracker.wait_closed()
"""

from order_tracking.services.tracking.client import OrdersApiClient
from order_tracking.services.tracking.session import (
    DisplayState,
    TrackingDisplay,
    TrackingSession,
)
from order_tracking.services.tracking.snapshot import TrackingSnapshot
from order_tracking.services.tracking.tracker import DeliveryTracker

__all__ = [
    "OrdersApiClient",
    "DisplayState",
    "TrackingDisplay",
    "TrackingSession",
    "TrackingSnapshot",
    "DeliveryTracker",
]
