"""Live Query Engine Models

Pydantic models for query criteria, tracked locations, range subscriptions,
and engine settings, plus the event kinds the engine emits.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator

from geolive_core.exceptions import GeoLiveConfigurationError, GeoLiveInvalidArgumentError
from ..geohash import Coordinate, GeohashRange, coerce_coordinate, validate_radius


class GeoEventType(str, Enum):
    """Events a live query emits.

    Values:
        READY: Initial data for every active range has been processed
        KEY_ENTERED: A key moved into the circle or was written inside it
        KEY_EXITED: A key left the circle or was removed from the store
        KEY_MOVED: A key already in the circle moved within it
        KEY_MODIFIED: A key in the circle changed without moving
    """
    READY = "ready"
    KEY_ENTERED = "key_entered"
    KEY_EXITED = "key_exited"
    KEY_MOVED = "key_moved"
    KEY_MODIFIED = "key_modified"


class QueryCriteria(BaseModel):
    """Center, radius and optional store-level filter of a live query.

    On update every field is optional; ``model_fields_set`` tells an omitted
    ``store_filter`` apart from an explicit ``None`` that clears it.
    """

    center: Optional[Coordinate] = Field(None, description="Query center")
    radius_km: Optional[float] = Field(
        None,
        validation_alias=AliasChoices("radius_km", "radius"),
        description="Query radius in kilometers"
    )
    store_filter: Optional[Any] = Field(None, description="Store-level filter for range subscriptions")

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    @field_validator('center', mode='before')
    @classmethod
    def validate_center(cls, v: Any) -> Optional[Coordinate]:
        """Accept anything coerce_coordinate understands."""
        if v is None:
            return None
        return coerce_coordinate(v)

    @field_validator('radius_km', mode='before')
    @classmethod
    def validate_radius_km(cls, v: Any) -> Optional[float]:
        """Radius must be a finite, non-negative number."""
        if v is None:
            return None
        return validate_radius(v)


def validate_criteria(criteria: Any, require_center_and_radius: bool = False) -> QueryCriteria:
    """Validate query criteria given as a QueryCriteria or a mapping.

    Args:
        criteria: Criteria to validate
        require_center_and_radius: True when creating a query

    Returns:
        Validated QueryCriteria

    Raises:
        GeoLiveInvalidArgumentError: If the criteria are malformed
    """
    if isinstance(criteria, QueryCriteria):
        parsed = criteria
    elif isinstance(criteria, dict):
        try:
            parsed = QueryCriteria.model_validate(criteria)
        except ValidationError as e:
            first_error = e.errors()[0]
            location = ".".join(str(part) for part in first_error.get("loc", ()))
            raise GeoLiveInvalidArgumentError(
                f"Invalid query criteria: {first_error['msg']}",
                {"field": location} if location else None
            )
    else:
        raise GeoLiveInvalidArgumentError("QueryCriteria must be a QueryCriteria or a mapping")

    if not parsed.model_fields_set:
        raise GeoLiveInvalidArgumentError("radius and/or center must be specified")
    if require_center_and_radius and (parsed.center is None or parsed.radius_km is None):
        raise GeoLiveInvalidArgumentError(
            "QueryCriteria for a new query must contain both a center and a radius"
        )
    return parsed


class TrackedLocation(BaseModel):
    """A key currently visible through at least one subscribed range.

    Tracked regardless of whether it lies inside the query radius.
    """

    key: str = Field(..., description="Record identifier")
    coordinate: Coordinate = Field(..., description="Last known location")
    geohash: str = Field(..., description="Geohash of the location at the engine precision")
    payload: Optional[Dict[Any, Any]] = Field(None, description="Decoded payload")
    raw_record: Optional[Any] = Field(None, description="Record as delivered by the store")
    distance_km: float = Field(..., ge=0, description="Distance from the query center")
    in_query: bool = Field(..., description="Whether the location lies inside the radius")


class ActiveRangeSubscription(BaseModel):
    """A store subscription for one geohash range.

    ``active`` is False once the current criteria no longer need the range;
    the subscription stays open until the next cleanup pass.
    """

    geohash_range: GeohashRange = Field(..., description="Subscribed range")
    subscription_id: int = Field(..., ge=1, description="Distinguishes re-subscriptions of a range")
    active: bool = Field(True, description="Whether the current criteria need this range")
    synced: bool = Field(False, description="Whether the initial batch has been delivered")
    handle: Optional[Any] = Field(None, description="Store cancellation handle")

    @property
    def range_id(self) -> str:
        return self.geohash_range.range_id


class EngineSettings(BaseModel):
    """Tunables of a live query engine.

    Loaded from the ``engine`` section of environment_config.json.
    """

    geohash_precision: int = Field(10, ge=1, le=22, description="Precision of tracked geohashes")
    gc_interval_seconds: float = Field(10.0, gt=0, description="Period of the cleanup tick")
    cleanup_threshold: int = Field(25, ge=1, description="Subscription count that schedules a cleanup")
    cleanup_delay_seconds: float = Field(0.01, ge=0, description="Debounce delay of a scheduled cleanup")
    refetch_attempts: int = Field(3, ge=1, description="Attempts for the removal re-fetch")
    refetch_backoff_seconds: float = Field(0.5, ge=0, description="Exponential backoff multiplier")
    refetch_timeout_seconds: float = Field(10.0, gt=0, description="Timeout of one re-fetch attempt")

    model_config = {"extra": "forbid"}

    @classmethod
    def from_config(cls, config_loader, environment: str) -> "EngineSettings":
        """Build settings from a ConfigLoader environment.

        Raises:
            GeoLiveConfigurationError: If the engine section is invalid
        """
        engine_config = config_loader.get_engine_config(environment)
        try:
            return cls(**engine_config)
        except ValidationError as e:
            raise GeoLiveConfigurationError(
                f"Invalid engine configuration: {e.errors()[0]['msg']}",
                {"environment": environment}
            )
