"""
Shared geo utilities for the amenity engine
Consolidates distance calculations, ordering and display helpers
"""

import math
from typing import Iterable, List, NamedTuple, Optional, Tuple

EARTH_RADIUS_KM = 6371.0

DIRECTIONS_URL_TEMPLATE = (
    "https://www.google.com/maps/dir/{olat},{olng}/{dlat},{dlng}/"
    "@{dlat},{dlng},16z/data=!3m1!4b1!4m2!4m1!3e2"
)


class LatLng(NamedTuple):
    """A WGS84 point in degrees."""
    lat: float
    lng: float


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate distance between two points in meters using the Haversine formula.

    Args:
        lat1, lon1: First point coordinates
        lat2, lon2: Second point coordinates

    Returns:
        Distance in meters
    """
    return _haversine_km(lat1, lon1, lat2, lon2) * 1000.0


def _haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = math.sin(delta_phi/2)**2 + math.cos(phi1) * \
        math.cos(phi2) * math.sin(delta_lambda/2)**2
    # Rounding can push a a hair above 1 for near-antipodal points
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """
    Great-circle distance between two (lat, lng) points in kilometers.

    Symmetric and exactly 0.0 for identical points.
    """
    if a[0] == b[0] and a[1] == b[1]:
        return 0.0
    return _haversine_km(a[0], a[1], b[0], b[1])


def directions_url(origin: Tuple[float, float], destination: Tuple[float, float]) -> str:
    """Walking directions URL from origin to destination. No network access."""
    return DIRECTIONS_URL_TEMPLATE.format(
        olat=float(origin[0]), olng=float(origin[1]),
        dlat=float(destination[0]), dlng=float(destination[1]),
    )


def validate_coordinates(lat: float, lon: float) -> bool:
    """
    Validate that coordinates are within valid ranges.

    Args:
        lat, lon: Coordinates to validate

    Returns:
        True if coordinates are valid
    """
    try:
        lat_f = float(lat)
        lon_f = float(lon)
    except (TypeError, ValueError):
        return False
    if math.isnan(lat_f) or math.isnan(lon_f):
        return False
    return -90 <= lat_f <= 90 and -180 <= lon_f <= 180


def format_distance(distance_m: float) -> str:
    """
    Format distance in a human-readable way.

    Args:
        distance_m: Distance in meters

    Returns:
        Formatted distance string
    """
    if distance_m < 1000:
        return f"{int(distance_m)}m"
    else:
        return f"{distance_m/1000:.1f}km"


def sort_by_distance(amenities: Iterable, origin: Tuple[float, float],
                     max_distance_km: Optional[float] = None) -> List[Tuple[object, float]]:
    """
    Order amenities nearest-first from an origin point.

    Args:
        amenities: Objects exposing `latitude` and `longitude`
        origin: (lat, lng) of the user
        max_distance_km: Optional cutoff; farther amenities are dropped

    Returns:
        List of (amenity, distance_km) tuples sorted by distance, ties broken by id
    """
    rows = []
    for amenity in amenities:
        d = distance_km(origin, (amenity.latitude, amenity.longitude))
        if max_distance_km is not None and d > max_distance_km:
            continue
        rows.append((amenity, d))

    rows.sort(key=lambda r: (r[1], str(getattr(r[0], "id", ""))))
    return rows
