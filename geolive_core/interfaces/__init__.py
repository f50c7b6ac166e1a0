"""GeoLive Interfaces

This package contains abstract interfaces and data models for the external
capabilities the GeoLive modules consume.
"""

from .range_store import ChangeType, StoreChange, RangeListener, RangeStore

__all__ = ['ChangeType', 'StoreChange', 'RangeListener', 'RangeStore']
