"""Geohash Codec

Encodes coordinates into base-32 geohash strings and decodes them back.
Bits are interleaved starting with longitude: even bit positions bisect the
longitude interval, odd positions the latitude interval.
"""

from typing import Any, Tuple

from geolive_core.exceptions import GeoLiveInvalidArgumentError
from .geohash_models import (
    BASE32, BASE32_INDEX, BITS_PER_CHAR, GEOHASH_PRECISION, MAXIMUM_PRECISION,
    Coordinate, coerce_coordinate
)


def validate_precision(precision: Any) -> int:
    """Ensure a geohash precision is an integer in [1, 22]."""
    if isinstance(precision, bool) or not isinstance(precision, (int, float)):
        raise GeoLiveInvalidArgumentError("precision must be a number", {"precision": precision})
    if precision != precision:  # NaN
        raise GeoLiveInvalidArgumentError("precision must be a number", {"precision": precision})
    if precision <= 0:
        raise GeoLiveInvalidArgumentError("precision must be greater than 0", {"precision": precision})
    if precision > MAXIMUM_PRECISION:
        raise GeoLiveInvalidArgumentError(
            f"precision cannot be greater than {MAXIMUM_PRECISION}", {"precision": precision}
        )
    if int(precision) != precision:
        raise GeoLiveInvalidArgumentError("precision must be an integer", {"precision": precision})
    return int(precision)


def validate_geohash(geohash: Any) -> str:
    """Ensure a value is a non-empty string over the geohash alphabet."""
    if not isinstance(geohash, str):
        raise GeoLiveInvalidArgumentError("geohash must be a string", {"geohash": geohash})
    if not geohash:
        raise GeoLiveInvalidArgumentError("geohash cannot be the empty string")
    for letter in geohash:
        if letter not in BASE32_INDEX:
            raise GeoLiveInvalidArgumentError(
                f"geohash cannot contain '{letter}'", {"geohash": geohash}
            )
    return geohash


def encode_geohash(location: Any, precision: int = GEOHASH_PRECISION) -> str:
    """Generate a geohash of the given length for a location.

    Args:
        location: Coordinate, (latitude, longitude) pair or mapping
        precision: Number of characters, 1 to 22

    Returns:
        The geohash string

    Raises:
        GeoLiveInvalidArgumentError: If the location or precision is invalid
    """
    coordinate = coerce_coordinate(location)
    precision = validate_precision(precision)

    latitude_range = [-90.0, 90.0]
    longitude_range = [-180.0, 180.0]
    chars = []
    hash_value = 0
    bits = 0
    even = True

    while len(chars) < precision:
        value = coordinate.longitude if even else coordinate.latitude
        interval = longitude_range if even else latitude_range
        mid = (interval[0] + interval[1]) / 2
        if value > mid:
            hash_value = (hash_value << 1) + 1
            interval[0] = mid
        else:
            hash_value = hash_value << 1
            interval[1] = mid

        even = not even
        bits += 1
        if bits == BITS_PER_CHAR:
            chars.append(BASE32[hash_value])
            bits = 0
            hash_value = 0

    return "".join(chars)


def decode_geohash_bounds(geohash: str) -> Tuple[float, float, float, float]:
    """Return the cell of a geohash as (lat_min, lat_max, lon_min, lon_max)."""
    validate_geohash(geohash)

    latitude_range = [-90.0, 90.0]
    longitude_range = [-180.0, 180.0]
    even = True

    for char in geohash:
        value = BASE32_INDEX[char]
        for shift in range(BITS_PER_CHAR - 1, -1, -1):
            interval = longitude_range if even else latitude_range
            mid = (interval[0] + interval[1]) / 2
            if (value >> shift) & 1:
                interval[0] = mid
            else:
                interval[1] = mid
            even = not even

    return latitude_range[0], latitude_range[1], longitude_range[0], longitude_range[1]


def decode_geohash(geohash: str) -> Coordinate:
    """Decode a geohash to the center of its cell."""
    lat_min, lat_max, lon_min, lon_max = decode_geohash_bounds(geohash)
    return Coordinate(latitude=(lat_min + lat_max) / 2, longitude=(lon_min + lon_max) / 2)
