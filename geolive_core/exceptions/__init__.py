"""
Custom exceptions for the GeoLive live query system.

This module provides domain-specific exception classes for error handling
and debugging throughout the system.
"""

from .custom_exceptions import (
    GeoLiveBaseException,
    GeoLiveConfigurationError,
    GeoLiveInvalidArgumentError,
    GeoLiveCorruptRecordError,
    GeoLiveInvariantViolation,
    GeoLiveStoreError,
)

__all__ = [
    "GeoLiveBaseException",
    "GeoLiveConfigurationError",
    "GeoLiveInvalidArgumentError",
    "GeoLiveCorruptRecordError",
    "GeoLiveInvariantViolation",
    "GeoLiveStoreError",
]
