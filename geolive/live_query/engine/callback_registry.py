"""Callback registry for live query events."""

import functools
from typing import Callable, Dict, List

from geolive_core.exceptions import GeoLiveInvalidArgumentError
from .engine_models import GeoEventType


class CallbackRegistration:
    """Handle returned by LiveQueryEngine.on().

    cancel() removes exactly the registration that produced the handle and
    may be called any number of times.
    """

    def __init__(self, cancel_callback: Callable[[], None]):
        if not callable(cancel_callback):
            raise GeoLiveInvalidArgumentError("cancel_callback must be callable")
        self._cancel_callback = cancel_callback

    @property
    def is_cancelled(self) -> bool:
        return self._cancel_callback is None

    def cancel(self) -> None:
        if self._cancel_callback is not None:
            cancel_callback = self._cancel_callback
            self._cancel_callback = None
            cancel_callback()


class _Entry:
    # identity matters: the same callable may be registered twice
    __slots__ = ("callback",)

    def __init__(self, callback: Callable):
        self.callback = callback


class CallbackRegistry:
    """Ordered callbacks per event type."""

    def __init__(self):
        self._entries: Dict[GeoEventType, List[_Entry]] = {kind: [] for kind in GeoEventType}

    def add(self, kind: GeoEventType, callback: Callable) -> CallbackRegistration:
        entry = _Entry(callback)
        self._entries[kind].append(entry)
        return CallbackRegistration(functools.partial(self._remove, kind, entry))

    def _remove(self, kind: GeoEventType, entry: _Entry) -> None:
        entries = self._entries[kind]
        if entry in entries:
            entries.remove(entry)

    def callbacks(self, kind: GeoEventType) -> List[Callable]:
        """Snapshot of the callbacks registered for an event type."""
        return [entry.callback for entry in self._entries[kind]]

    def count(self, kind: GeoEventType) -> int:
        return len(self._entries[kind])

    def clear(self) -> None:
        for entries in self._entries.values():
            entries.clear()
