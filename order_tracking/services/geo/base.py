"""
Location Provider Abstract Base Class

Defines the interface contract for the consumer-position collaborator.
The tracker never determines the consumer's position itself; it asks a
provider and treats the answer as an input.

Use Cases:
    - Distance/ETA between courier and consumer
    - Centralized tracking endpoint (position passed by the client)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class Position:
    """
    A point-in-time geographic fix.

    Attributes:
        latitude: GPS latitude in degrees
        longitude: GPS longitude in degrees
        recorded_at: When the fix was taken
        accuracy_m: Reported accuracy radius, if known
    """
    latitude: float
    longitude: float
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    accuracy_m: Optional[float] = None


class BaseLocationProvider(ABC):
    """
    Abstract base class for consumer location providers.

    Example:
        >>> provider = get_location_provider()
        >>> position = await provider.get_current_position()
        >>> if position is not None:
        ...     print(position.latitude, position.longitude)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the location provider.

        Returns:
            str: Provider name (e.g., "mock", "device")
        """
        pass

    @abstractmethod
    async def get_current_position(self) -> Optional[Position]:
        """
        Return the consumer's current position.

        Returns:
            Position, or None when no fix is available (permission denied,
            no signal). Callers keep their previous position in that case.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the provider can currently deliver positions.

        Returns:
            bool: True if operational
        """
        pass
