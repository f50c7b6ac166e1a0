"""Serialized Event Inbox

Every input to a live query engine (store changes, sync signals, re-fetch
results, timer ticks and public calls) runs through one EventInbox. Work is
executed one item at a time under a re-entrant lock:

- A post() made while the inbox is busy (for example from inside a consumer
  callback or from a store that delivers synchronously) is queued and handled
  after the current item finishes.
- A post() from another thread blocks until the current drain completes and
  its message has been handled.

The inbox keeps only a weak reference to its handler so listeners and timers
that hold the inbox do not keep an abandoned engine alive.
"""

import logging
import threading
import weakref
from collections import deque
from typing import Any, Callable

logger = logging.getLogger(__name__)


class EventInbox:
    """Single-consumer queue drained under a re-entrant lock."""

    def __init__(self, handler: Callable[[Any], None]):
        """
        Args:
            handler: Bound method invoked once per posted message
        """
        self._handler = weakref.WeakMethod(handler)
        self._queue = deque()
        self._lock = threading.RLock()
        self._busy = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._queue)

    def close(self) -> None:
        """Stop accepting messages and drop anything still queued."""
        self._closed = True
        self._queue.clear()

    def post(self, message: Any) -> bool:
        """Queue a message and drain unless a drain is already in progress.

        Returns:
            False once the inbox is closed, True otherwise
        """
        if self._closed:
            return False
        self._queue.append(message)
        with self._lock:
            if not self._busy:
                self._drain()
        return not self._closed

    def call(self, function: Callable, *args) -> Any:
        """Run a function in the serialized context and return its result.

        Re-entrant calls run immediately; otherwise queued messages are
        drained once the function returns.
        """
        with self._lock:
            if self._busy:
                return function(*args)
            self._busy = True
            try:
                result = function(*args)
            finally:
                self._busy = False
            self._drain()
            return result

    def _drain(self) -> None:
        # caller holds self._lock
        self._busy = True
        try:
            while self._queue and not self._closed:
                message = self._queue.popleft()
                handler = self._handler()
                if handler is None:
                    logger.debug("Inbox handler was garbage collected, closing inbox")
                    self.close()
                    break
                handler(message)
        finally:
            self._busy = False
