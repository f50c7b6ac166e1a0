"""Shared fixtures for the live query module tests."""

import itertools
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pytest

from geolive_core.exceptions import GeoLiveStoreError
from geolive_core.interfaces import ChangeType, RangeListener, RangeStore, StoreChange
from geolive.live_query.engine import EngineSettings, LiveQueryEngine
from geolive.live_query.records import encode_record


@dataclass
class FakeSubscription:
    start: str
    end: str
    listener: RangeListener
    store_filter: Optional[Any] = None
    synced: bool = False

    def contains(self, geohash: str) -> bool:
        return self.start <= geohash < self.end


@dataclass
class FakeRangeStore(RangeStore):
    """In-memory store that behaves like a document store with range listeners.

    subscribe_range() delivers the initial batch synchronously and, when
    auto_sync is set, signals synced right after it. put() and delete()
    notify every open subscription the way a change stream would: a record
    leaving a range produces a removal on that range.
    """

    auto_sync: bool = True
    records: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    subscriptions: Dict[int, FakeSubscription] = field(default_factory=dict)
    cancelled: List[int] = field(default_factory=list)
    get_one_calls: List[str] = field(default_factory=list)
    get_one_error: Optional[Exception] = None
    _handles: Any = field(default_factory=lambda: itertools.count(1))

    def subscribe_range(self, start, end, listener, store_filter=None):
        handle = next(self._handles)
        subscription = FakeSubscription(start, end, listener, store_filter)
        self.subscriptions[handle] = subscription
        for key, raw in sorted(self.records.items()):
            if subscription.contains(raw["g"]):
                listener.on_change(StoreChange(type=ChangeType.ADDED, key=key, raw_record=raw))
        if self.auto_sync:
            self._sync(subscription)
        return handle

    def cancel(self, handle):
        self.cancelled.append(handle)
        self.subscriptions.pop(handle, None)

    def get_one(self, key):
        self.get_one_calls.append(key)
        if self.get_one_error is not None:
            raise self.get_one_error
        return self.records.get(key)

    # Test helpers

    def seed(self, key, location, payload=None):
        """Store a record without notifying anybody."""
        raw = encode_record(location, payload or {})
        self.records[key] = raw
        return raw

    def put(self, key, location, payload=None):
        """Write a record and notify every subscription it enters, stays in or leaves."""
        previous = self.records.get(key)
        raw = self.seed(key, location, payload)
        for subscription in list(self.subscriptions.values()):
            was_in = previous is not None and subscription.contains(previous["g"])
            if subscription.contains(raw["g"]):
                change_type = ChangeType.MODIFIED if was_in else ChangeType.ADDED
                subscription.listener.on_change(StoreChange(type=change_type, key=key, raw_record=raw))
            elif was_in:
                subscription.listener.on_change(
                    StoreChange(type=ChangeType.REMOVED, key=key, raw_record=previous)
                )
        return raw

    def delete(self, key):
        previous = self.records.pop(key)
        for subscription in list(self.subscriptions.values()):
            if subscription.contains(previous["g"]):
                subscription.listener.on_change(
                    StoreChange(type=ChangeType.REMOVED, key=key, raw_record=previous)
                )

    def push(self, geohash, change):
        """Deliver a raw change to every subscription covering a geohash."""
        for subscription in self.subscriptions_covering(geohash):
            subscription.listener.on_change(change)

    def sync_all(self):
        for subscription in list(self.subscriptions.values()):
            if not subscription.synced:
                self._sync(subscription)

    def subscriptions_covering(self, geohash):
        return [s for s in list(self.subscriptions.values()) if s.contains(geohash)]

    def open_range_ids(self):
        return sorted(f"{s.start}:{s.end}" for s in self.subscriptions.values())

    def _sync(self, subscription):
        subscription.synced = True
        subscription.listener.on_synced()


class EventRecorder:
    """Collects engine events as (event, key, payload, distance) tuples."""

    def __init__(self, engine=None):
        self.events = []
        if engine is not None:
            self.attach(engine)

    def attach(self, engine):
        for event in ("key_entered", "key_exited", "key_moved", "key_modified"):
            engine.on(event, self._recorder(event))
        engine.on("ready", lambda: self.events.append(("ready",)))

    def _recorder(self, event):
        def record(key, payload, distance, raw_record):
            self.events.append((event, key, payload, distance))
        return record

    def names(self):
        return [event[0] for event in self.events]

    def of(self, name):
        return [event for event in self.events if event[0] == name]

    def clear(self):
        self.events.clear()


@pytest.fixture
def store():
    return FakeRangeStore()


@pytest.fixture
def settings():
    """Settings whose timers never fire during a test."""
    return EngineSettings(
        gc_interval_seconds=3600,
        cleanup_delay_seconds=3600,
        refetch_attempts=2,
        refetch_backoff_seconds=0,
        refetch_timeout_seconds=5
    )


@pytest.fixture
def failing_store():
    store = FakeRangeStore()
    store.get_one_error = GeoLiveStoreError("store unavailable")
    return store


@pytest.fixture
def make_engine(store, settings):
    """Factory creating engines with an attached EventRecorder; cancels them on teardown."""
    engines = []

    def factory(criteria, **kwargs):
        kwargs.setdefault("settings", settings)
        engine = LiveQueryEngine(kwargs.pop("store", store), criteria, **kwargs)
        engines.append(engine)
        return engine, EventRecorder(engine)

    yield factory
    for engine in engines:
        engine.cancel()
