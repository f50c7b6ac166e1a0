"""Background timers driving range cleanup.

Both timers run on daemon threads and must be cancelled by their owner.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RepeatingTimer:
    """Call a function every ``interval`` seconds until cancelled.

    The loop also stops when the function returns False.
    """

    def __init__(self, interval: float, function: Callable, *args, name: Optional[str] = None):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.function = function
        self.args = args
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def is_running(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._stopped.set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            if self.function(*self.args) is False:
                logger.debug(f"Timer {self._thread.name} stopped by its callback")
                break


class DebounceTimer:
    """One-shot timer that ignores schedule() while a run is pending."""

    def __init__(self, name: Optional[str] = None):
        self.name = name
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def schedule(self, delay: float, function: Callable, *args) -> bool:
        """Schedule a run unless one is already pending.

        Returns:
            True if a new run was scheduled
        """
        with self._lock:
            if self._timer is not None:
                return False
            timer = threading.Timer(delay, self._fire, args=(function, args))
            timer.daemon = True
            if self.name:
                timer.name = self.name
            self._timer = timer
            timer.start()
            return True

    def cancel(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, function: Callable, args: tuple) -> None:
        with self._lock:
            self._timer = None
        function(*args)
