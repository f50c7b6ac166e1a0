"""Bounding Box Range Planner

Turns a circle (center + radius) into a small set of lexicographic geohash
ranges whose union contains every point of the circle.

The bit budget comes from an ellipsoidal model (E2) while membership is later
checked with the spherical Haversine distance. The two disagree slightly at
the margin of a radius; points right on the edge may be missed by the ranges
or reported once fetched. This is an accepted approximation.
"""

import math
from typing import Any, List

from .geohash_codec import encode_geohash, validate_geohash
from .geohash_models import (
    BASE32, BASE32_INDEX, BITS_PER_CHAR, MAXIMUM_BITS_PRECISION, RANGE_SENTINEL,
    Coordinate, GeohashRange, coerce_coordinate
)
from geolive_core.exceptions import GeoLiveInvalidArgumentError

# The meridional circumference of the earth in meters
EARTH_MERIDIONAL_CIRCUMFERENCE = 40007860
# Length of a degree latitude at the equator
METERS_PER_DEGREE_LATITUDE = 110574
# Equatorial radius of the earth in meters
EARTH_EQUATORIAL_RADIUS = 6378137.0
# Squared eccentricity of the reference ellipsoid,
# (EQ_RADIUS^2 - POLAR_RADIUS^2) / EQ_RADIUS^2 with a polar radius of 6356752.3
E2 = 0.00669447819799
# Cutoff for rounding errors on double calculations
EPSILON = 1e-12


def meters_to_longitude_degrees(distance: float, latitude: float) -> float:
    """Convert a distance in meters to degrees of longitude at a latitude."""
    radians = math.radians(latitude)
    num = math.cos(radians) * EARTH_EQUATORIAL_RADIUS * math.pi / 180
    denom = 1 / math.sqrt(1 - E2 * math.sin(radians) * math.sin(radians))
    delta_deg = num * denom
    if delta_deg < EPSILON:
        return 360.0 if distance > 0 else 0.0
    return min(360.0, distance / delta_deg)


def longitude_bits_for_resolution(resolution: float, latitude: float) -> float:
    """Bits of longitude needed to reach a resolution in meters at a latitude."""
    degrees = meters_to_longitude_degrees(resolution, latitude)
    if abs(degrees) > 0.000001:
        return max(1.0, math.log2(360 / degrees))
    return 1.0


def latitude_bits_for_resolution(resolution: float) -> float:
    """Bits of latitude needed to reach a resolution in meters."""
    if resolution <= 0:
        return float(MAXIMUM_BITS_PRECISION)
    return min(math.log2(EARTH_MERIDIONAL_CIRCUMFERENCE / 2 / resolution), MAXIMUM_BITS_PRECISION)


def wrap_longitude(longitude: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if -180 <= longitude <= 180:
        return longitude
    adjusted = longitude + 180
    if adjusted > 0:
        return math.fmod(adjusted, 360) - 180
    return 180 - math.fmod(-adjusted, 360)


def _clamped_latitudes(center: Coordinate, radius_m: float):
    lat_delta = radius_m / METERS_PER_DEGREE_LATITUDE
    north = min(90.0, center.latitude + lat_delta)
    south = max(-90.0, center.latitude - lat_delta)
    return north, south


def bounding_box_bits(center: Any, radius_m: float) -> int:
    """Maximum geohash bits whose cells are at least as large as the query box.

    Longitude owns the even bit positions starting at 0, hence the ``- 1``
    when converting longitude bits to interleaved bits.
    """
    center = coerce_coordinate(center)
    north, south = _clamped_latitudes(center, radius_m)
    bits_lat = math.floor(latitude_bits_for_resolution(radius_m)) * 2
    bits_long_north = math.floor(longitude_bits_for_resolution(radius_m, north)) * 2 - 1
    bits_long_south = math.floor(longitude_bits_for_resolution(radius_m, south)) * 2 - 1
    return min(bits_lat, bits_long_north, bits_long_south, MAXIMUM_BITS_PRECISION)


def bounding_box_coordinates(center: Any, radius_m: float) -> List[Coordinate]:
    """Center plus the eight compass points of the circle's bounding box.

    At least one of these nine points, truncated to the planner's bit budget,
    shares a cell with any point inside the circle.
    """
    center = coerce_coordinate(center)
    north, south = _clamped_latitudes(center, radius_m)
    long_degs = max(
        meters_to_longitude_degrees(radius_m, north),
        meters_to_longitude_degrees(radius_m, south)
    )
    west = wrap_longitude(center.longitude - long_degs)
    east = wrap_longitude(center.longitude + long_degs)

    return [
        Coordinate(latitude=center.latitude, longitude=center.longitude),
        Coordinate(latitude=center.latitude, longitude=west),
        Coordinate(latitude=center.latitude, longitude=east),
        Coordinate(latitude=north, longitude=center.longitude),
        Coordinate(latitude=north, longitude=west),
        Coordinate(latitude=north, longitude=east),
        Coordinate(latitude=south, longitude=center.longitude),
        Coordinate(latitude=south, longitude=west),
        Coordinate(latitude=south, longitude=east),
    ]


def range_for_precision(geohash: str, bits: int) -> GeohashRange:
    """Range covering every geohash that shares the first ``bits`` bits.

    Args:
        geohash: Geohash to truncate
        bits: Number of significant bits

    Returns:
        GeohashRange for the cell
    """
    validate_geohash(geohash)
    if isinstance(bits, bool) or not isinstance(bits, int) or not 1 <= bits <= MAXIMUM_BITS_PRECISION:
        raise GeoLiveInvalidArgumentError(
            f"bits must be an integer in [1, {MAXIMUM_BITS_PRECISION}]", {"bits": bits}
        )
    precision = math.ceil(bits / BITS_PER_CHAR)
    if len(geohash) < precision:
        return GeohashRange(start=geohash, end=geohash + RANGE_SENTINEL)

    geohash = geohash[:precision]
    base = geohash[:-1]
    last_value = BASE32_INDEX[geohash[-1]]
    significant_bits = bits - len(base) * BITS_PER_CHAR
    unused_bits = BITS_PER_CHAR - significant_bits
    # drop the unused low-order bits
    start_value = (last_value >> unused_bits) << unused_bits
    end_value = start_value + (1 << unused_bits)
    if end_value > 31:
        return GeohashRange(start=base + BASE32[start_value], end=base + RANGE_SENTINEL)
    return GeohashRange(start=base + BASE32[start_value], end=base + BASE32[end_value])


def plan_ranges(center: Any, radius_km: float) -> List[GeohashRange]:
    """Calculate the set of ranges that fully contains a circle.

    Only exact duplicate ranges are removed; a range nested inside a broader
    one is kept.

    Args:
        center: Coordinate, (latitude, longitude) pair or mapping
        radius_km: Radius in kilometers (>= 0)

    Returns:
        Deduplicated ranges in the order their corner points were generated

    Raises:
        GeoLiveInvalidArgumentError: If the center or radius is invalid
    """
    center = coerce_coordinate(center)
    radius_km = validate_radius(radius_km)
    radius_m = radius_km * 1000

    query_bits = max(1, bounding_box_bits(center, radius_m))
    precision = math.ceil(query_bits / BITS_PER_CHAR)

    ranges = []
    seen = set()
    for coordinate in bounding_box_coordinates(center, radius_m):
        geohash_range = range_for_precision(encode_geohash(coordinate, precision), query_bits)
        if geohash_range.range_id not in seen:
            seen.add(geohash_range.range_id)
            ranges.append(geohash_range)
    return ranges


def validate_radius(radius_km: Any) -> float:
    """Ensure a radius is a finite, non-negative number of kilometers."""
    if isinstance(radius_km, bool) or not isinstance(radius_km, (int, float)):
        raise GeoLiveInvalidArgumentError("radius must be a number", {"radius": radius_km})
    if math.isnan(radius_km) or math.isinf(radius_km):
        raise GeoLiveInvalidArgumentError("radius must be a finite number", {"radius": radius_km})
    if radius_km < 0:
        raise GeoLiveInvalidArgumentError(
            "radius must be greater than or equal to 0", {"radius": radius_km}
        )
    return float(radius_km)
