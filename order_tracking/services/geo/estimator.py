"""
Distance and ETA estimation.

Pure functions only: no I/O, no clock, no locale. Inputs are expected to be
validated by the caller (see ``is_valid_coordinate``).
"""

import math

EARTH_RADIUS_KM = 6371.0
AVERAGE_COURIER_SPEED_KMH = 30.0
MIN_ESTIMATE_SECONDS = 60


def is_valid_coordinate(latitude: float, longitude: float) -> bool:
    """Check that a latitude/longitude pair is within the WGS84 ranges."""
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points using the haversine formula.

    Args:
        lat1: Latitude of the first point in degrees
        lon1: Longitude of the first point in degrees
        lat2: Latitude of the second point in degrees
        lon2: Longitude of the second point in degrees

    Returns:
        float: Distance in kilometres
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def buffer_minutes(distance: float) -> int:
    """Safety padding added on top of raw travel time."""
    if distance < 2:
        return 5
    if distance < 5:
        return 10
    return 15


def estimated_seconds(distance: float, speed_kmh: float = AVERAGE_COURIER_SPEED_KMH) -> int:
    """
    Estimate the remaining delivery time for a courier ``distance`` km away.

    Raw travel time is rounded up to whole minutes (at least one), then the
    distance-dependent buffer is added.

    Example:
        >>> estimated_seconds(1.4)
        480
    """
    travel_minutes = max(1, math.ceil(distance * 60 / speed_kmh))
    total = travel_minutes * 60 + buffer_minutes(distance) * 60
    return max(MIN_ESTIMATE_SECONDS, total)


def format_countdown(seconds: int) -> str:
    """
    Human label for a remaining-time countdown.

    Example:
        >>> format_countdown(125)
        '2:05 minutes'
    """
    if seconds <= 0:
        return "arriving now"
    if seconds <= 60:
        return f"{seconds} seconds remaining"
    if seconds <= 300:
        return f"{seconds // 60}:{seconds % 60:02d} minutes"
    if seconds <= 1800:
        return f"{seconds // 60} minutes"
    return f"{seconds // 3600} hours {(seconds % 3600) // 60} minutes"
