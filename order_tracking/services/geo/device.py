"""
Device-fed Location Provider

Holds the latest position pushed by the consumer's device (the platform
geolocation API on the client side). The tracker reads it on every refresh.
Used when ENV_MODE=production or ENV_MODE=staging.
"""

import logging
from typing import Optional

from order_tracking.services.geo.base import BaseLocationProvider, Position

logger = logging.getLogger(__name__)


class DeviceLocationProvider(BaseLocationProvider):
    """
    Location provider backed by positions reported by the device.

    Example:
        >>> provider = DeviceLocationProvider()
        >>> provider.update(40.7410, -73.9896)
        >>> (await provider.get_current_position()).latitude
        40.741
    """

    def __init__(self, initial: Optional[Position] = None):
        self._position = initial

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "device"

    def update(self, latitude: float, longitude: float, accuracy_m: Optional[float] = None) -> Position:
        """Store a new fix reported by the device."""
        self._position = Position(latitude=latitude, longitude=longitude, accuracy_m=accuracy_m)
        logger.debug(f"Device position updated to ({latitude:.5f}, {longitude:.5f})")
        return self._position

    def clear(self) -> None:
        """Forget the last fix (e.g. location permission revoked)."""
        self._position = None

    async def get_current_position(self) -> Optional[Position]:
        return self._position

    async def health_check(self) -> bool:
        return self._position is not None
