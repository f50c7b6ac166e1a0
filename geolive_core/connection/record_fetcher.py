"""
Record fetcher for the GeoLive live query system.

This module provides point reads against the backing store with retry logic
and timeout handling. The live query engine uses it to re-read a record after
a range subscription reports a removal.
"""

from typing import Any, Optional

from func_timeout import func_timeout, FunctionTimedOut
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..exceptions import GeoLiveStoreError, GeoLiveInvalidArgumentError
from ..interfaces import RangeStore
from ..utils import get_logger

logger = get_logger(__name__)


class RecordFetcher:
    """
    Point reader with bounded retries and a per-attempt timeout.

    Any failure raised by the store is normalized to GeoLiveStoreError so the
    retry policy only has one exception type to consider.
    """

    def __init__(self, store: RangeStore, attempts: int = 3,
                 backoff_seconds: float = 0.5, timeout_seconds: float = 10.0):
        """
        Initialize the record fetcher.

        Args:
            store: Store providing get_one()
            attempts: Maximum number of read attempts (>= 1)
            backoff_seconds: Multiplier for the exponential wait between attempts
            timeout_seconds: Timeout applied to each individual attempt
        """
        if attempts < 1:
            raise GeoLiveInvalidArgumentError("attempts must be at least 1", {"attempts": attempts})
        if timeout_seconds <= 0:
            raise GeoLiveInvalidArgumentError(
                "timeout_seconds must be positive", {"timeout_seconds": timeout_seconds}
            )
        self.store = store
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        logger.debug("RecordFetcher initialized")

    def fetch(self, key: str) -> Optional[Any]:
        """
        Read the current raw record for a key with retry logic.

        Args:
            key: Record identifier

        Returns:
            Raw record, or None if the key does not exist

        Raises:
            GeoLiveStoreError: If every attempt failed
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff_seconds, max=30),
            retry=retry_if_exception_type(GeoLiveStoreError),
            reraise=True
        )
        for attempt in retrying:
            with attempt:
                return self._fetch_once(key)

    def _fetch_once(self, key: str) -> Optional[Any]:
        try:
            return func_timeout(self.timeout_seconds, self.store.get_one, args=(key,))
        except FunctionTimedOut:
            logger.warning(f"Point read for '{key}' timed out after {self.timeout_seconds}s")
            raise GeoLiveStoreError(
                "Point read timed out",
                {"key": key, "timeout_seconds": self.timeout_seconds}
            )
        except GeoLiveStoreError:
            raise
        except Exception as e:
            logger.warning(f"Point read for '{key}' failed: {str(e)}")
            raise GeoLiveStoreError(f"Point read failed: {str(e)}", {"key": key})
