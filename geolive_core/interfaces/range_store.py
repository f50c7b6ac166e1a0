"""GeoLive Range Store Interface

This module defines the abstract base classes and data models describing the
backing store capability consumed by the live query engine: lexicographic range
subscriptions over the geohash key, their cancellation, and point reads.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ChangeType(str, Enum):
    """Kind of change pushed by a range subscription."""
    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"


class StoreChange(BaseModel):
    """A single change event pushed by a range subscription.

    ``raw_record`` is the store's undecoded record; it is decoded by the
    engine's record codec and may be ``None`` for removals.
    """

    type: ChangeType = Field(..., description="Kind of change")
    key: str = Field(..., min_length=1, description="Opaque record identifier")
    raw_record: Optional[Any] = Field(None, description="Undecoded store record")

    model_config = {"frozen": True}


class RangeListener(ABC):
    """Receiver for the events of one range subscription."""

    @abstractmethod
    def on_change(self, change: StoreChange) -> None:
        """Handle an added/modified/removed event for the subscribed range."""
        pass

    @abstractmethod
    def on_synced(self) -> None:
        """Signal that the initial batch for the range has been delivered.

        Stores call this exactly once per subscription.
        """
        pass


class RangeStore(ABC):
    """Abstract backing store with range subscriptions over a sorted geohash key.

    Implementations adapt a concrete document store. Range semantics are
    half-open: a subscription for ``(start, end)`` covers every record whose
    geohash ``g`` satisfies ``start <= g < end``.
    """

    @abstractmethod
    def subscribe_range(self, start: str, end: str, listener: RangeListener,
                        store_filter: Optional[Any] = None) -> Any:
        """Open a live subscription for a geohash range.

        Args:
            start: Inclusive lower bound of the range
            end: Exclusive upper bound of the range
            listener: Receiver for change events and the synced signal
            store_filter: Optional store-level filter narrowing the records

        Returns:
            An opaque handle accepted by ``cancel``
        """
        pass

    @abstractmethod
    def cancel(self, handle: Any) -> None:
        """Stop the subscription identified by ``handle``."""
        pass

    @abstractmethod
    def get_one(self, key: str) -> Optional[Any]:
        """Read the current raw record for ``key``.

        Returns:
            The raw record, or None if the key does not exist

        Raises:
            GeoLiveStoreError: If the read fails
        """
        pass
