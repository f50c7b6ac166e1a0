"""
Custom exception classes for the GeoLive live query system.

This module defines domain-specific exceptions to provide clear error handling
and debugging information throughout the system.
"""

from typing import Optional, Dict, Any


class GeoLiveBaseException(Exception):
    """Base exception class for all GeoLive system exceptions."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class GeoLiveConfigurationError(GeoLiveBaseException):
    """
    Exception raised when configuration loading or validation fails.

    This exception is raised when:
    - Configuration files are missing or invalid
    - Environment configuration is malformed
    - Engine settings fail validation
    """
    pass


class GeoLiveInvalidArgumentError(GeoLiveBaseException, ValueError):
    """
    Exception raised when a caller passes an invalid argument.

    This exception is raised when:
    - A coordinate is outside [-90, 90] / [-180, 180]
    - A radius is negative or not a number
    - A geohash precision is not an integer in [1, 22]
    - Query criteria are malformed

    Always surfaced synchronously and never retried.
    """
    pass


class GeoLiveCorruptRecordError(GeoLiveBaseException):
    """
    Exception raised when a store record fails geo-field validation.

    The live query engine treats such a record as absent for indexing
    purposes rather than crashing.
    """
    pass


class GeoLiveInvariantViolation(GeoLiveBaseException):
    """
    Exception raised when the reconciliation state becomes inconsistent.

    Indicates a bug in the reconciliation logic. The engine that raises it
    is cancelled and the error is propagated, never swallowed.
    """
    pass


class GeoLiveStoreError(GeoLiveBaseException):
    """
    Exception raised when a backing store operation fails.

    This exception is raised when:
    - A point read times out
    - The store reports an I/O failure
    - Retries for a point read are exhausted
    """
    pass
