"""Record Envelope Codec

Stored records wrap an arbitrary payload in a geo envelope:

    {"g": <geohash>, "l": <location>, "d": <payload>}

The geohash field is the sorted key the range subscriptions scan over. Field
names are configurable through RecordFieldMapping.
"""

from typing import Any, Dict, Mapping

from pydantic import BaseModel, Field, ValidationError

from geolive_core.exceptions import (
    GeoLiveConfigurationError,
    GeoLiveCorruptRecordError,
    GeoLiveInvalidArgumentError
)
from ..geohash import (
    GEOHASH_PRECISION, Coordinate, coerce_coordinate, encode_geohash, validate_geohash
)


class RecordFieldMapping(BaseModel):
    """Names of the envelope fields inside a stored record."""

    geohash_field: str = Field("g", min_length=1, description="Field holding the geohash key")
    location_field: str = Field("l", min_length=1, description="Field holding the location")
    payload_field: str = Field("d", min_length=1, description="Field holding the payload")

    model_config = {"frozen": True}

    @classmethod
    def from_config(cls, config_loader, environment: str) -> "RecordFieldMapping":
        """Build the mapping from the record_fields section of a ConfigLoader environment.

        Missing keys keep their defaults.

        Raises:
            GeoLiveConfigurationError: If the section is invalid
        """
        try:
            return cls(**config_loader.get_record_fields(environment))
        except ValidationError as e:
            raise GeoLiveConfigurationError(
                f"Invalid record field configuration: {e.errors()[0]['msg']}",
                {"environment": environment}
            )


DEFAULT_FIELDS = RecordFieldMapping()


class GeoRecord(BaseModel):
    """Decoded record envelope."""

    geohash: str = Field(..., min_length=1, description="Stored geohash key")
    coordinate: Coordinate = Field(..., description="Stored location")
    payload: Dict[Any, Any] = Field(default_factory=dict, description="Opaque payload")


def encode_record(location: Any, payload: Mapping[str, Any],
                  precision: int = GEOHASH_PRECISION,
                  fields: RecordFieldMapping = DEFAULT_FIELDS) -> Dict[str, Any]:
    """Wrap a payload and its location into a storable envelope.

    Raises:
        GeoLiveInvalidArgumentError: If the location or payload is invalid
    """
    coordinate = coerce_coordinate(location)
    if not isinstance(payload, Mapping):
        raise GeoLiveInvalidArgumentError("payload must be a mapping", {"payload": payload})
    return {
        fields.geohash_field: encode_geohash(coordinate, precision),
        fields.location_field: {"latitude": coordinate.latitude, "longitude": coordinate.longitude},
        fields.payload_field: dict(payload),
    }


def decode_record(raw_record: Any, fields: RecordFieldMapping = DEFAULT_FIELDS) -> GeoRecord:
    """Decode a stored envelope.

    Args:
        raw_record: Record as returned by the store
        fields: Envelope field names

    Returns:
        GeoRecord with the geohash, location and payload

    Raises:
        GeoLiveCorruptRecordError: If any envelope field is missing or invalid
    """
    if not isinstance(raw_record, Mapping):
        raise GeoLiveCorruptRecordError(
            "record is not a mapping", {"record_type": type(raw_record).__name__}
        )

    try:
        geohash = validate_geohash(raw_record.get(fields.geohash_field))
    except GeoLiveInvalidArgumentError as e:
        raise GeoLiveCorruptRecordError(f"invalid geohash on record: {e.message}")

    try:
        coordinate = coerce_coordinate(raw_record.get(fields.location_field))
    except GeoLiveInvalidArgumentError as e:
        raise GeoLiveCorruptRecordError(f"invalid location on record: {e.message}")

    payload = raw_record.get(fields.payload_field)
    if not isinstance(payload, Mapping):
        raise GeoLiveCorruptRecordError("no valid payload found on record")

    try:
        return GeoRecord(geohash=geohash, coordinate=coordinate, payload=dict(payload))
    except ValidationError as e:
        raise GeoLiveCorruptRecordError(f"invalid record envelope: {str(e).splitlines()[0]}")
