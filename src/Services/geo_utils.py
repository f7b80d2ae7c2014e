"""
Geodesy helpers
===============
Great-circle distance and angular arithmetic shared by trip segmentation,
harsh-event analysis and the geofence checker.
"""

from math import radians, sin, cos, sqrt, atan2

# Earth radius in meters
EARTH_RADIUS_M = 6371000


def calculate_haversine_distance(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float
) -> float:
    """
    Distance between two GPS points using the Haversine formula.

    Formula:
        a = sin²(Δlat/2) + cos(lat1) * cos(lat2) * sin²(Δlon/2)
        c = 2 * atan2(√a, √(1−a))
        d = R * c

    Returns:
        float: Distance in meters

    Examples:
        >>> calculate_haversine_distance(6.5244, 3.3792, 6.5244, 3.3792)
        0.0
        >>> round(calculate_haversine_distance(10.0, -74.0, 10.001, -74.0), 1)
        111.2
    """
    lat1_rad = radians(lat1)
    lat2_rad = radians(lat2)
    delta_lat = radians(lat2 - lat1)
    delta_lon = radians(lon2 - lon1)

    a = sin(delta_lat / 2) ** 2 + cos(lat1_rad) * cos(lat2_rad) * sin(delta_lon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_M * c


def heading_delta(previous: float, current: float) -> float:
    """Shortest angular distance between two headings, in [0, 180] degrees."""
    delta = abs(current - previous) % 360
    return 360 - delta if delta > 180 else delta
