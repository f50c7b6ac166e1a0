"""
Connection module for the GeoLive live query system.

This module provides resilient point reads against the backing store.
"""

from .record_fetcher import RecordFetcher

__all__ = [
    'RecordFetcher'
]
