"""Great-circle distance between coordinates."""

import math
from typing import Any

from .geohash_models import coerce_coordinate

# Mean Earth radius in kilometers
EARTH_RADIUS_KM = 6371.0


def distance_km(location1: Any, location2: Any) -> float:
    """Compute the Haversine distance in kilometers between two locations.

    This is approximate: the Earth's radius varies between 6356.752 km and
    6378.137 km.

    Args:
        location1: Coordinate, (latitude, longitude) pair or mapping
        location2: Coordinate, (latitude, longitude) pair or mapping

    Returns:
        Distance in kilometers.

    Raises:
        GeoLiveInvalidArgumentError: If either location is invalid
    """
    a = coerce_coordinate(location1)
    b = coerce_coordinate(location2)

    lat_delta = math.radians(b.latitude - a.latitude)
    lon_delta = math.radians(b.longitude - a.longitude)
    h = (math.sin(lat_delta / 2) ** 2
         + math.cos(math.radians(a.latitude)) * math.cos(math.radians(b.latitude))
         * math.sin(lon_delta / 2) ** 2)
    h = min(1.0, h)  # rounding near antipodes
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c
