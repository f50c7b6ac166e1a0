"""
Configuration management module for the GeoLive live query system.

This module provides configuration loading and validation capabilities for
multi-environment deployments (development and production).
"""

from .config_loader import ConfigLoader, DEFAULT_ENVIRONMENT, ENVIRONMENT_VARIABLE

__all__ = ["ConfigLoader", "DEFAULT_ENVIRONMENT", "ENVIRONMENT_VARIABLE"]
