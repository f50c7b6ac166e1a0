"""Live Query Engine

Maintains a standing "everything within R km of C" query over a RangeStore.
The circle is planned into geohash ranges, each range gets a store
subscription, and every change those subscriptions push is reconciled against
the tracked locations to emit ready / key_entered / key_exited / key_moved /
key_modified events.

All state changes run through a single EventInbox, so consumer callbacks are
never invoked concurrently and always observe a consistent engine. Callbacks
run on whichever thread drained the inbox: the caller of a public method, a
store delivery thread, a re-fetch executor thread or a cleanup timer thread.
"""

import itertools
import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from geolive_core.connection import RecordFetcher
from geolive_core.exceptions import (
    GeoLiveCorruptRecordError,
    GeoLiveInvalidArgumentError,
    GeoLiveInvariantViolation,
    GeoLiveStoreError
)
from geolive_core.interfaces import ChangeType, RangeListener, RangeStore, StoreChange
from geolive_core.utils import log_performance
from ..geohash import Coordinate, GeohashRange, distance_km, encode_geohash, plan_ranges
from ..records import DEFAULT_FIELDS, GeoRecord, RecordFieldMapping, decode_record
from .callback_registry import CallbackRegistration, CallbackRegistry
from .engine_models import (
    ActiveRangeSubscription,
    EngineSettings,
    GeoEventType,
    QueryCriteria,
    TrackedLocation,
    validate_criteria
)
from .engine_timers import DebounceTimer, RepeatingTimer
from .event_inbox import EventInbox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _RangeChangeMessage:
    range_id: str
    subscription_id: int
    change: StoreChange


@dataclass(frozen=True)
class _RangeSyncedMessage:
    range_id: str
    subscription_id: int


@dataclass(frozen=True)
class _RefetchCompletedMessage:
    key: str
    token: int
    raw_record: Any = None
    error: Optional[GeoLiveStoreError] = None


@dataclass(frozen=True)
class _CleanupMessage:
    periodic: bool


class _InboxRangeListener(RangeListener):
    """Forwards one subscription's events into the engine inbox."""

    def __init__(self, inbox: EventInbox, range_id: str, subscription_id: int):
        self._inbox = inbox
        self._range_id = range_id
        self._subscription_id = subscription_id

    def on_change(self, change: StoreChange) -> None:
        self._inbox.post(_RangeChangeMessage(self._range_id, self._subscription_id, change))

    def on_synced(self) -> None:
        self._inbox.post(_RangeSyncedMessage(self._range_id, self._subscription_id))


def _refetch(inbox: EventInbox, fetcher: RecordFetcher, key: str, token: int) -> None:
    try:
        raw_record = fetcher.fetch(key)
    except GeoLiveStoreError as e:
        inbox.post(_RefetchCompletedMessage(key, token, error=e))
        return
    inbox.post(_RefetchCompletedMessage(key, token, raw_record=raw_record))


class LiveQueryEngine:
    """Standing radius query that reports keys entering, moving in and leaving it.

    Example:
        engine = LiveQueryEngine(store, {"center": (37.77, -122.42), "radius_km": 2})
        engine.on("key_entered", lambda key, payload, distance, raw: print(key, distance))
        engine.on("ready", lambda: print("initial data loaded"))
        ...
        engine.cancel()
    """

    def __init__(self, store: RangeStore, criteria: Any,
                 settings: Optional[EngineSettings] = None,
                 fields: RecordFieldMapping = DEFAULT_FIELDS,
                 executor: Optional[Executor] = None,
                 fetcher: Optional[RecordFetcher] = None):
        """
        Create and start a live query.

        Args:
            store: Backing store providing range subscriptions and point reads
            criteria: QueryCriteria or mapping with both center and radius_km
            settings: Engine tunables, defaults to EngineSettings()
            fields: Envelope field names of stored records
            executor: Runs removal re-fetches off the delivery thread when given
            fetcher: Overrides the RecordFetcher built from settings

        Raises:
            GeoLiveInvalidArgumentError: If the criteria are invalid
            GeoLiveStoreError: If a range subscription could not be opened
        """
        criteria = validate_criteria(criteria, require_center_and_radius=True)
        self._settings = settings or EngineSettings()
        self._store = store
        self._fields = fields
        self._executor = executor
        self._fetcher = fetcher or RecordFetcher(
            store,
            attempts=self._settings.refetch_attempts,
            backoff_seconds=self._settings.refetch_backoff_seconds,
            timeout_seconds=self._settings.refetch_timeout_seconds
        )

        self._center: Coordinate = criteria.center
        self._radius: float = criteria.radius_km
        self._store_filter: Optional[Any] = criteria.store_filter

        self._callbacks = CallbackRegistry()
        self._subscriptions: Dict[str, ActiveRangeSubscription] = {}
        self._locations: Dict[str, TrackedLocation] = {}
        self._pending_ready: Set[str] = set()
        self._pending_refetches: Dict[str, int] = {}
        self._resync_keys: Set[str] = set()
        self._refetch_tokens = itertools.count(1)
        self._subscription_ids = itertools.count(1)
        self._ready = False
        self._cancelled = False
        self._cleanup_scheduled = False

        self._inbox = EventInbox(self._dispatch)
        self._cleanup_timer = DebounceTimer(name="geolive-cleanup")
        self._gc_timer = RepeatingTimer(
            self._settings.gc_interval_seconds,
            self._inbox.post, _CleanupMessage(periodic=True),
            name="geolive-gc"
        )

        logger.info(
            f"Creating live query at ({self._center.latitude}, {self._center.longitude}) "
            f"with radius {self._radius} km"
        )
        try:
            self._inbox.call(self._listen_for_new_ranges)
        except GeoLiveStoreError:
            self._inbox.call(self._shutdown)
            raise
        self._gc_timer.start()

    # Public API

    def update(self, criteria: Any) -> None:
        """
        Move and/or resize the query.

        Omitted fields keep their current value; store_filter is replaced only
        when explicitly supplied, and an explicit None clears it.

        Raises:
            GeoLiveInvalidArgumentError: If the criteria are invalid or the query is cancelled
        """
        criteria = validate_criteria(criteria)
        self._inbox.call(self._apply_criteria, criteria)

    def on(self, event_type: Any, callback: Callable) -> CallbackRegistration:
        """
        Register a callback for an event type.

        key_entered callbacks are immediately replayed for every key already
        in the query, and ready callbacks fire immediately once the query is
        ready. Key callbacks receive (key, payload, distance_km, raw_record);
        ready callbacks receive no arguments.

        Raises:
            GeoLiveInvalidArgumentError: For an unknown event type, a
                non-callable callback or a cancelled query
        """
        try:
            kind = GeoEventType(event_type)
        except ValueError:
            valid = ", ".join(f'"{kind.value}"' for kind in GeoEventType)
            raise GeoLiveInvalidArgumentError(
                f'event type must be one of {valid}', {"event_type": event_type}
            )
        if not callable(callback):
            raise GeoLiveInvalidArgumentError("callback must be a function")
        return self._inbox.call(self._register, kind, callback)

    def cancel(self) -> None:
        """Stop the query: no further callbacks fire and every subscription is cancelled."""
        self._inbox.call(self._shutdown)

    def cleanup_pass(self) -> None:
        """Cancel inactive subscriptions and evict locations no active range covers.

        Raises:
            GeoLiveInvariantViolation: If a location still in the query would be evicted
        """
        self._inbox.call(self._clean_up_ranges)

    def covered_by_any_active_range(self, geohash: str) -> bool:
        """Whether an active range subscription contains the geohash."""
        return self._inbox.call(self._is_covered, geohash)

    def center(self) -> Coordinate:
        return self._center

    def radius(self) -> float:
        return self._radius

    def store_filter(self) -> Optional[Any]:
        return self._store_filter

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    @property
    def is_ready(self) -> bool:
        return self._ready

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def cleanup_scheduled(self) -> bool:
        return self._cleanup_scheduled

    def active_range_ids(self) -> List[str]:
        return self._inbox.call(
            lambda: [rid for rid, sub in self._subscriptions.items() if sub.active]
        )

    def subscribed_range_ids(self) -> List[str]:
        """Every open subscription, active or awaiting cleanup."""
        return self._inbox.call(lambda: list(self._subscriptions))

    def tracked_keys(self) -> List[str]:
        return self._inbox.call(lambda: list(self._locations))

    def get_tracked_location(self, key: str) -> Optional[TrackedLocation]:
        return self._inbox.call(self._locations.get, key)

    # Serialized operations

    def _dispatch(self, message: Any) -> None:
        if isinstance(message, _RangeChangeMessage):
            self._on_range_change(message)
        elif isinstance(message, _RangeSyncedMessage):
            self._on_range_synced(message)
        elif isinstance(message, _RefetchCompletedMessage):
            self._on_refetch_completed(message)
        elif isinstance(message, _CleanupMessage):
            self._on_cleanup_message(message)
        else:
            logger.error(f"Unknown inbox message type: {type(message).__name__}")

    def _apply_criteria(self, criteria: QueryCriteria) -> None:
        if self._cancelled:
            raise GeoLiveInvalidArgumentError("Cannot update a cancelled query")

        if criteria.center is not None:
            self._center = criteria.center
        if criteria.radius_km is not None:
            self._radius = criteria.radius_km
        if "store_filter" in criteria.model_fields_set:
            self._store_filter = criteria.store_filter
        logger.info(
            f"Updating live query to ({self._center.latitude}, {self._center.longitude}) "
            f"with radius {self._radius} km"
        )

        for key in list(self._locations):
            if self._cancelled:
                return
            location = self._locations.get(key)
            if location is None:
                continue
            was_in_query = location.in_query
            location.distance_km = distance_km(location.coordinate, self._center)
            location.in_query = location.distance_km <= self._radius
            if was_in_query and not location.in_query:
                self._fire_key_event(GeoEventType.KEY_EXITED, location)
            elif location.in_query and not was_in_query:
                self._fire_key_event(GeoEventType.KEY_ENTERED, location)

        if self._cancelled:
            return
        self._ready = False
        self._listen_for_new_ranges()

    def _listen_for_new_ranges(self) -> None:
        wanted: Dict[str, GeohashRange] = {
            geohash_range.range_id: geohash_range
            for geohash_range in plan_ranges(self._center, self._radius)
        }
        for range_id, subscription in self._subscriptions.items():
            subscription.active = range_id in wanted

        new_ranges = [r for range_id, r in wanted.items() if range_id not in self._subscriptions]
        self._pending_ready = {
            range_id for range_id in wanted
            if range_id not in self._subscriptions or not self._subscriptions[range_id].synced
        }
        logger.debug(
            f"Planned {len(wanted)} ranges, subscribing to {len(new_ranges)} new ones"
        )

        for geohash_range in new_ranges:
            self._subscribe(geohash_range)

        if len(self._subscriptions) > self._settings.cleanup_threshold and not self._cleanup_scheduled:
            self._schedule_cleanup()

        if not self._pending_ready:
            self._mark_ready()

    def _subscribe(self, geohash_range: GeohashRange) -> None:
        subscription = ActiveRangeSubscription(
            geohash_range=geohash_range,
            subscription_id=next(self._subscription_ids)
        )
        listener = _InboxRangeListener(self._inbox, subscription.range_id, subscription.subscription_id)
        self._subscriptions[subscription.range_id] = subscription
        try:
            subscription.handle = self._store.subscribe_range(
                geohash_range.start, geohash_range.end, listener, self._store_filter
            )
        except GeoLiveStoreError:
            del self._subscriptions[subscription.range_id]
            self._pending_ready.discard(subscription.range_id)
            raise
        except Exception as e:
            del self._subscriptions[subscription.range_id]
            self._pending_ready.discard(subscription.range_id)
            logger.error(f"Failed to subscribe to range {subscription.range_id}: {str(e)}")
            raise GeoLiveStoreError(
                f"Failed to subscribe to range: {str(e)}", {"range_id": subscription.range_id}
            )

    def _cancel_subscription(self, subscription: ActiveRangeSubscription) -> None:
        try:
            self._store.cancel(subscription.handle)
        except Exception as e:
            logger.error(f"Failed to cancel subscription for {subscription.range_id}: {str(e)}")

    def _schedule_cleanup(self) -> None:
        self._cleanup_scheduled = True
        self._cleanup_timer.schedule(
            self._settings.cleanup_delay_seconds,
            self._inbox.post, _CleanupMessage(periodic=False)
        )

    def _on_range_change(self, message: _RangeChangeMessage) -> None:
        if not self._is_current_subscription(message.range_id, message.subscription_id):
            logger.debug(f"Dropping change for '{message.change.key}' from retired range {message.range_id}")
            return
        change = message.change
        if change.type == ChangeType.REMOVED:
            self._on_key_removed(change.key)
        else:
            self._on_key_written(change.key, change.raw_record, change.type == ChangeType.MODIFIED)

    def _on_range_synced(self, message: _RangeSyncedMessage) -> None:
        if not self._is_current_subscription(message.range_id, message.subscription_id):
            return
        self._subscriptions[message.range_id].synced = True
        if message.range_id in self._pending_ready:
            self._pending_ready.discard(message.range_id)
            if not self._pending_ready:
                self._mark_ready()

    def _is_current_subscription(self, range_id: str, subscription_id: int) -> bool:
        subscription = self._subscriptions.get(range_id)
        return subscription is not None and subscription.subscription_id == subscription_id

    def _on_key_written(self, key: str, raw_record: Any, modified: bool) -> None:
        # a newer write supersedes any outstanding removal re-fetch
        self._pending_refetches.pop(key, None)
        self._resync_keys.discard(key)
        try:
            record = decode_record(raw_record, self._fields)
        except GeoLiveCorruptRecordError as e:
            logger.warning(f"Ignoring corrupt record '{key}': {e.message}")
            if key in self._locations:
                self._remove_location(key, None, None)
            return
        self._update_location(key, record, raw_record, modified)

    def _update_location(self, key: str, record: GeoRecord, raw_record: Any, modified: bool) -> None:
        previous = self._locations.get(key)
        was_in_query = previous.in_query if previous is not None else False
        previous_coordinate = previous.coordinate if previous is not None else None

        distance = distance_km(record.coordinate, self._center)
        location = TrackedLocation(
            key=key,
            coordinate=record.coordinate,
            geohash=encode_geohash(record.coordinate, self._settings.geohash_precision),
            payload=record.payload,
            raw_record=raw_record,
            distance_km=distance,
            in_query=distance <= self._radius
        )
        self._locations[key] = location

        if location.in_query and not was_in_query:
            self._fire_key_event(GeoEventType.KEY_ENTERED, location)
        elif location.in_query and previous_coordinate is not None and previous_coordinate != record.coordinate:
            self._fire_key_event(GeoEventType.KEY_MOVED, location)
        elif was_in_query and not location.in_query:
            self._fire_key_event(GeoEventType.KEY_EXITED, location)
        elif location.in_query and modified:
            self._fire_key_event(GeoEventType.KEY_MODIFIED, location)

    def _on_key_removed(self, key: str) -> None:
        if key not in self._locations:
            return
        # the record may only have left this range, so re-read before exiting it
        self._start_refetch(key)

    def _start_refetch(self, key: str) -> None:
        token = next(self._refetch_tokens)
        self._pending_refetches[key] = token
        self._resync_keys.discard(key)
        if self._executor is None:
            _refetch(self._inbox, self._fetcher, key, token)
        else:
            self._executor.submit(_refetch, self._inbox, self._fetcher, key, token)

    def _on_refetch_completed(self, message: _RefetchCompletedMessage) -> None:
        key = message.key
        if self._pending_refetches.get(key) != message.token:
            logger.debug(f"Discarding stale re-fetch result for '{key}'")
            return
        del self._pending_refetches[key]

        if message.error is not None:
            logger.error(
                f"Re-fetch of '{key}' failed, retrying on the next cleanup tick: {message.error}"
            )
            self._resync_keys.add(key)
            return

        record = None
        if message.raw_record is not None:
            try:
                record = decode_record(message.raw_record, self._fields)
            except GeoLiveCorruptRecordError as e:
                logger.warning(f"Re-fetched record '{key}' is corrupt, treating it as removed: {e.message}")

        if record is not None:
            geohash = encode_geohash(record.coordinate, self._settings.geohash_precision)
            if self._is_covered(geohash):
                return
            self._remove_location(key, record, message.raw_record)
        else:
            self._remove_location(key, None, None)

    def _remove_location(self, key: str, record: Optional[GeoRecord], raw_record: Any) -> None:
        location = self._locations.pop(key, None)
        self._pending_refetches.pop(key, None)
        self._resync_keys.discard(key)
        if location is None or not location.in_query:
            return
        if record is None:
            self._fire(GeoEventType.KEY_EXITED, key, None, None, None)
        else:
            self._fire(
                GeoEventType.KEY_EXITED, key, record.payload,
                distance_km(record.coordinate, self._center), raw_record
            )

    def _is_covered(self, geohash: str) -> bool:
        return any(
            subscription.active and subscription.geohash_range.contains(geohash)
            for subscription in self._subscriptions.values()
        )

    def _on_cleanup_message(self, message: _CleanupMessage) -> None:
        if self._cancelled:
            return
        if message.periodic:
            self._resync_failed_refetches()
            if self._cleanup_scheduled:
                # the debounced pass will run shortly
                return
        self._clean_up_ranges()

    def _resync_failed_refetches(self) -> None:
        for key in list(self._resync_keys):
            if key in self._locations and key not in self._pending_refetches:
                logger.info(f"Re-issuing failed re-fetch for '{key}'")
                self._start_refetch(key)
            else:
                self._resync_keys.discard(key)

    @log_performance
    def _clean_up_ranges(self) -> None:
        if self._cancelled:
            return
        for range_id in list(self._subscriptions):
            subscription = self._subscriptions[range_id]
            if not subscription.active:
                self._cancel_subscription(subscription)
                del self._subscriptions[range_id]
                self._pending_ready.discard(range_id)

        for key in list(self._locations):
            location = self._locations[key]
            if self._is_covered(location.geohash):
                continue
            if location.in_query:
                self._abort(GeoLiveInvariantViolation(
                    "Trying to remove a location that is still in the query",
                    {"key": key, "geohash": location.geohash}
                ))
            del self._locations[key]
            self._pending_refetches.pop(key, None)
            self._resync_keys.discard(key)

        self._cleanup_scheduled = False
        self._cleanup_timer.cancel()
        logger.debug(
            f"Cleanup finished with {len(self._subscriptions)} subscriptions "
            f"and {len(self._locations)} tracked locations"
        )

    def _abort(self, error: GeoLiveInvariantViolation) -> None:
        logger.critical(f"Live query stopped after an internal error: {error}")
        self._shutdown()
        raise error

    def _register(self, kind: GeoEventType, callback: Callable) -> CallbackRegistration:
        if self._cancelled:
            raise GeoLiveInvalidArgumentError("Cannot register callbacks on a cancelled query")
        registration = self._callbacks.add(kind, callback)

        if kind == GeoEventType.KEY_ENTERED:
            for location in list(self._locations.values()):
                if self._cancelled or registration.is_cancelled:
                    break
                if location.in_query:
                    self._invoke(
                        kind, callback,
                        location.key, location.payload, location.distance_km, location.raw_record
                    )
        elif kind == GeoEventType.READY and self._ready:
            self._invoke(kind, callback)
        return registration

    def _mark_ready(self) -> None:
        self._ready = True
        logger.debug("Live query is ready")
        self._fire(GeoEventType.READY)

    def _fire_key_event(self, kind: GeoEventType, location: TrackedLocation) -> None:
        self._fire(kind, location.key, location.payload, location.distance_km, location.raw_record)

    def _fire(self, kind: GeoEventType, *args) -> None:
        for callback in self._callbacks.callbacks(kind):
            if self._cancelled:
                break
            self._invoke(kind, callback, *args)

    def _invoke(self, kind: GeoEventType, callback: Callable, *args) -> None:
        try:
            callback(*args)
        except GeoLiveInvariantViolation:
            raise
        except Exception:
            logger.exception(f"{kind.value} callback raised an exception")

    def _shutdown(self) -> None:
        if self._cancelled:
            logger.debug("Live query already cancelled")
            return
        self._cancelled = True
        logger.info("Cancelling live query")
        self._gc_timer.cancel()
        self._cleanup_timer.cancel()
        self._callbacks.clear()
        for subscription in list(self._subscriptions.values()):
            self._cancel_subscription(subscription)
        self._subscriptions.clear()
        self._locations.clear()
        self._pending_ready.clear()
        self._pending_refetches.clear()
        self._resync_keys.clear()
        self._cleanup_scheduled = False
        self._inbox.close()


def create_query(store: RangeStore, criteria: Any,
                 settings: Optional[EngineSettings] = None,
                 fields: RecordFieldMapping = DEFAULT_FIELDS,
                 executor: Optional[Executor] = None) -> LiveQueryEngine:
    """Create and start a live query; see LiveQueryEngine."""
    return LiveQueryEngine(store, criteria, settings=settings, fields=fields, executor=executor)


def create_query_from_config(store: RangeStore, criteria: Any, config_loader,
                             environment: str,
                             executor: Optional[Executor] = None) -> LiveQueryEngine:
    """Create and start a live query configured from a ConfigLoader environment.

    Engine settings come from the ``engine`` section and envelope field names
    from ``record_fields``.

    Raises:
        GeoLiveConfigurationError: If either section is invalid
        GeoLiveInvalidArgumentError: If the criteria are invalid
    """
    settings = EngineSettings.from_config(config_loader, environment)
    fields = RecordFieldMapping.from_config(config_loader, environment)
    logger.debug(f"Creating live query with {environment} configuration")
    return LiveQueryEngine(store, criteria, settings=settings, fields=fields, executor=executor)
