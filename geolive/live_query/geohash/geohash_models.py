"""Geohash Data Models for the Live Query Module

Pydantic models for coordinates and lexicographic geohash ranges, plus the
constants shared by the codec and the range planner.
"""

from typing import Any, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from geolive_core.exceptions import GeoLiveInvalidArgumentError


# Characters used in location geohashes
BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
BASE32_INDEX = {char: index for index, char in enumerate(BASE32)}
BITS_PER_CHAR = 5
MAXIMUM_PRECISION = 22
MAXIMUM_BITS_PRECISION = MAXIMUM_PRECISION * BITS_PER_CHAR
# Default geohash length for tracked locations and stored records
GEOHASH_PRECISION = 10
# Sorts after every character of BASE32
RANGE_SENTINEL = "~"


class Coordinate(BaseModel):
    """Immutable latitude/longitude pair in degrees.

    Range checks run on every construction, so an existing Coordinate is
    always valid.
    """

    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False, description="Longitude in degrees")

    model_config = {"frozen": True}

    @field_validator('latitude', 'longitude', mode='before')
    @classmethod
    def require_number(cls, v: Any) -> Any:
        """Reject strings, booleans and other non-numbers instead of coercing them."""
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            raise ValueError(f"must be a number, got {type(v).__name__}")
        return v

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class GeohashRange(BaseModel):
    """Half-open lexicographic interval ``[start, end)`` over geohash strings."""

    start: str = Field(..., description="Inclusive lower bound")
    end: str = Field(..., description="Exclusive upper bound")

    model_config = {"frozen": True}

    @property
    def range_id(self) -> str:
        """Stable identity used to diff range sets."""
        return f"{self.start}:{self.end}"

    def contains(self, geohash: str) -> bool:
        """Check whether a geohash falls inside this range."""
        return self.start <= geohash < self.end


def coerce_coordinate(value: Any) -> Coordinate:
    """Build a Coordinate from a Coordinate, a (lat, lon) pair or a mapping.

    Objects exposing ``latitude``/``longitude`` attributes (e.g. store-native
    geo points) are accepted too.

    Raises:
        GeoLiveInvalidArgumentError: If the value is not a valid coordinate
    """
    if isinstance(value, Coordinate):
        return value
    try:
        if isinstance(value, dict):
            return Coordinate(latitude=value["latitude"], longitude=value["longitude"])
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return Coordinate(latitude=value[0], longitude=value[1])
        if hasattr(value, "latitude") and hasattr(value, "longitude"):
            return Coordinate(latitude=value.latitude, longitude=value.longitude)
    except (KeyError, ValidationError) as e:
        raise GeoLiveInvalidArgumentError(
            f"Invalid location: {str(e).splitlines()[0]}", {"value": value}
        )
    raise GeoLiveInvalidArgumentError(
        "Invalid location: expected a Coordinate, (latitude, longitude) pair or mapping",
        {"value": value}
    )
