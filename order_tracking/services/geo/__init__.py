"""
Geo Services

Pure distance/ETA estimation plus the consumer-location collaborator.
The provider factory selects Mock or Device based on ENV_MODE configuration.

Usage:
    from order_tracking.services.geo import get_location_provider, distance_km

    provider = get_location_provider()
    position = await provider.get_current_position()
"""

import logging
from functools import lru_cache

from order_tracking.core.config import get_settings
from order_tracking.services.geo.base import BaseLocationProvider, Position
from order_tracking.services.geo.device import DeviceLocationProvider
from order_tracking.services.geo.estimator import (
    distance_km,
    estimated_seconds,
    format_countdown,
    is_valid_coordinate,
)
from order_tracking.services.geo.mock import MockLocationProvider

logger = logging.getLogger(__name__)


@lru_cache()
def get_location_provider() -> BaseLocationProvider:
    """
    Get the configured location provider instance.

    Returns:
        BaseLocationProvider: MockLocationProvider in development mode,
        DeviceLocationProvider otherwise
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Location Provider: Using MockLocationProvider (development mode)")
        return MockLocationProvider(
            center_latitude=settings.mock_location_latitude,
            center_longitude=settings.mock_location_longitude,
            failure_rate=settings.mock_location_failure_rate,
        )

    logger.info(
        f"Location Provider: Using DeviceLocationProvider "
        f"({settings.env_mode.value} mode)"
    )
    return DeviceLocationProvider()


def reset_location_provider() -> None:
    """
    Clear the cached provider instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_location_provider.cache_clear()
    logger.debug("Location provider cache cleared")


__all__ = [
    "get_location_provider",
    "reset_location_provider",
    "BaseLocationProvider",
    "Position",
    "MockLocationProvider",
    "DeviceLocationProvider",
    "distance_km",
    "estimated_seconds",
    "format_countdown",
    "is_valid_coordinate",
]
