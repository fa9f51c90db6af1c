"""
Mock Location Provider Implementation

Simulates a consumer device's geolocation without real hardware.
Used in development mode (ENV_MODE=development) for local testing.

Behavior:
    - Jitters around a configured centre point
    - Simulates sensor latency
    - Configurable failure rate (no fix) for testing stale-position handling
"""

import asyncio
import random
import logging
from typing import Optional

from order_tracking.services.geo.base import BaseLocationProvider, Position

logger = logging.getLogger(__name__)


class MockLocationProvider(BaseLocationProvider):
    """
    Mock implementation of the location provider.

    Attributes:
        center_latitude: Latitude the simulated consumer hovers around
        center_longitude: Longitude the simulated consumer hovers around
        failure_rate: Probability of reporting no fix (0.0-1.0)
        jitter_degrees: Maximum random offset applied to each fix
        min_latency: Minimum response time in seconds
        max_latency: Maximum response time in seconds
    """

    def __init__(
        self,
        center_latitude: float,
        center_longitude: float,
        failure_rate: float = 0.05,
        jitter_degrees: float = 0.0005,
        min_latency: float = 0.0,
        max_latency: float = 0.05,
    ):
        self.center_latitude = center_latitude
        self.center_longitude = center_longitude
        self.failure_rate = failure_rate
        self.jitter_degrees = jitter_degrees
        self.min_latency = min_latency
        self.max_latency = max_latency

        logger.info(
            f"MockLocationProvider initialized "
            f"(center=({center_latitude:.4f}, {center_longitude:.4f}), "
            f"failure_rate={failure_rate:.0%})"
        )

    @property
    def provider_name(self) -> str:
        """Return the provider name."""
        return "mock"

    async def _simulate_latency(self) -> None:
        await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    def _should_fail(self) -> bool:
        """Determine if this request should simulate a missing fix."""
        return random.random() < self.failure_rate

    async def get_current_position(self) -> Optional[Position]:
        await self._simulate_latency()

        if self._should_fail():
            logger.debug("Mock: Simulated missing location fix")
            return None

        lat = self.center_latitude + random.uniform(-self.jitter_degrees, self.jitter_degrees)
        lon = self.center_longitude + random.uniform(-self.jitter_degrees, self.jitter_degrees)
        return Position(
            latitude=round(lat, 6),
            longitude=round(lon, 6),
            accuracy_m=round(random.uniform(5, 30), 1),
        )

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        logger.debug("Mock: Location health check passed")
        return True
