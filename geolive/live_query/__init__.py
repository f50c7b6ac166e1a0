"""Live Query Module

Live radius queries over a store that only offers lexicographic range scans
and change subscriptions. Circles are planned into geohash ranges, and the
engine turns raw store changes into ready / key_entered / key_exited /
key_moved / key_modified events.
"""

from .geohash import (
    Coordinate,
    GeohashRange,
    encode_geohash,
    decode_geohash,
    decode_geohash_bounds,
    distance_km,
    plan_ranges
)
from .records import RecordFieldMapping, GeoRecord, encode_record, decode_record
from .engine import (
    GeoEventType,
    QueryCriteria,
    EngineSettings,
    CallbackRegistration,
    LiveQueryEngine,
    create_query,
    create_query_from_config
)

__all__ = [
    'Coordinate', 'GeohashRange',
    'encode_geohash', 'decode_geohash', 'decode_geohash_bounds', 'distance_km', 'plan_ranges',
    'RecordFieldMapping', 'GeoRecord', 'encode_record', 'decode_record',
    'GeoEventType', 'QueryCriteria', 'EngineSettings', 'CallbackRegistration',
    'LiveQueryEngine', 'create_query', 'create_query_from_config'
]
