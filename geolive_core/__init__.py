"""
GeoLive Framework Core Package

This package contains the shared infrastructure for the GeoLive live query
framework: configuration, logging, exceptions, and the interfaces of the
backing store consumed by the processing modules.
"""

from .interfaces import ChangeType, StoreChange, RangeListener, RangeStore

__version__ = "1.0.0"
__all__ = ['ChangeType', 'StoreChange', 'RangeListener', 'RangeStore']
