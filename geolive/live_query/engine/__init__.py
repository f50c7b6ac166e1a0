"""Live query engine: range reconciliation and geo event emission."""

from .engine_models import (
    GeoEventType,
    QueryCriteria,
    TrackedLocation,
    ActiveRangeSubscription,
    EngineSettings,
    validate_criteria
)
from .callback_registry import CallbackRegistration, CallbackRegistry
from .event_inbox import EventInbox
from .engine_timers import RepeatingTimer, DebounceTimer
from .live_query_engine import LiveQueryEngine, create_query, create_query_from_config

__all__ = [
    'GeoEventType', 'QueryCriteria', 'TrackedLocation', 'ActiveRangeSubscription',
    'EngineSettings', 'validate_criteria',
    'CallbackRegistration', 'CallbackRegistry',
    'EventInbox', 'RepeatingTimer', 'DebounceTimer',
    'LiveQueryEngine', 'create_query', 'create_query_from_config'
]
