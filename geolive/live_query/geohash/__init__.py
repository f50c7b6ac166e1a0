"""Geohash Indexing for the Live Query Module

Geohash codec, Haversine distance, and the bounding-box planner that turns a
circle into lexicographic geohash ranges.
"""

from .geohash_models import (
    BASE32,
    BITS_PER_CHAR,
    GEOHASH_PRECISION,
    MAXIMUM_BITS_PRECISION,
    RANGE_SENTINEL,
    Coordinate,
    GeohashRange,
    coerce_coordinate
)
from .geohash_codec import (
    encode_geohash,
    decode_geohash,
    decode_geohash_bounds,
    validate_geohash,
    validate_precision
)
from .distance import distance_km, EARTH_RADIUS_KM
from .range_planner import (
    bounding_box_bits,
    bounding_box_coordinates,
    range_for_precision,
    plan_ranges,
    validate_radius,
    wrap_longitude,
    meters_to_longitude_degrees,
    latitude_bits_for_resolution,
    longitude_bits_for_resolution
)

__all__ = [
    # Models and constants
    'BASE32', 'BITS_PER_CHAR', 'GEOHASH_PRECISION', 'MAXIMUM_BITS_PRECISION',
    'RANGE_SENTINEL', 'Coordinate', 'GeohashRange', 'coerce_coordinate',
    # Codec
    'encode_geohash', 'decode_geohash', 'decode_geohash_bounds',
    'validate_geohash', 'validate_precision',
    # Distance
    'distance_km', 'EARTH_RADIUS_KM',
    # Planner
    'bounding_box_bits', 'bounding_box_coordinates', 'range_for_precision',
    'plan_ranges', 'validate_radius', 'wrap_longitude', 'meters_to_longitude_degrees',
    'latitude_bits_for_resolution', 'longitude_bits_for_resolution'
]
