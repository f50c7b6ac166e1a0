"""
Configuration loader for the GeoLive live query system.

This module provides the ConfigLoader class that handles loading and validating
JSON configuration files for multi-environment deployments.
"""

import json
from pathlib import Path
from typing import Dict, Any, Optional
from functools import lru_cache

from ..exceptions import GeoLiveConfigurationError
from ..utils import get_logger


DEFAULT_ENVIRONMENT = "development"
ENVIRONMENT_VARIABLE = "GEOLIVE_ENVIRONMENT"


class ConfigLoader:
    """
    Configuration loader and validator for the GeoLive system.

    This class handles loading environment-specific configuration from JSON files,
    merging shared settings, and providing typed access to configuration sections.
    """

    REQUIRED_ENVIRONMENT_KEYS = ("logging", "engine")

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize the configuration loader.

        Args:
            config_dir: Directory containing configuration files (defaults to 'config/')
        """
        self.logger = get_logger(__name__)
        self.config_dir = Path(config_dir) if config_dir else Path("config")

    @lru_cache(maxsize=2)
    def load_environment_config(self, environment: str) -> Dict[str, Any]:
        """
        Load configuration for a specific environment.

        Args:
            environment: Environment name (development/production)

        Returns:
            Dictionary containing environment-specific configuration merged with shared config

        Raises:
            GeoLiveConfigurationError: If configuration cannot be loaded or validated
        """
        env_config_path = self.config_dir / "environment_config.json"

        if not env_config_path.exists():
            raise GeoLiveConfigurationError(
                f"Environment configuration file not found: {env_config_path}"
            )

        try:
            with open(env_config_path, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise GeoLiveConfigurationError(
                f"Invalid JSON in environment configuration: {str(e)}"
            )

        self._validate_environment_config(config_data, environment)

        env_config = dict(config_data["environments"][environment])

        shared_config = config_data.get("shared", {})
        for key, value in shared_config.items():
            if key not in env_config:
                env_config[key] = value
            elif isinstance(value, dict) and isinstance(env_config[key], dict):
                # Environment values win over shared ones
                merged = dict(value)
                merged.update(env_config[key])
                env_config[key] = merged

        self.logger.info(f"Loaded configuration for environment: {environment}")
        return env_config

    def get_engine_config(self, environment: str) -> Dict[str, Any]:
        """
        Get the live query engine section for an environment.

        Args:
            environment: Environment name

        Returns:
            Dictionary of engine settings (timers, thresholds, re-fetch policy)
        """
        return dict(self.load_environment_config(environment)["engine"])

    def get_logging_config(self, environment: str) -> Dict[str, Any]:
        """Get the logging section for an environment."""
        return dict(self.load_environment_config(environment)["logging"])

    def get_record_fields(self, environment: str) -> Dict[str, str]:
        """
        Get the record envelope field names for an environment.

        Args:
            environment: Environment name

        Returns:
            Mapping with geohash_field, location_field and payload_field keys;
            empty when the configuration does not override the defaults

        Raises:
            GeoLiveConfigurationError: If the section contains unknown keys
        """
        fields = dict(self.load_environment_config(environment).get("record_fields", {}))
        allowed = {"geohash_field", "location_field", "payload_field"}
        unknown = set(fields) - allowed
        if unknown:
            raise GeoLiveConfigurationError(
                f"Unknown record field keys: {sorted(unknown)}",
                {"environment": environment}
            )
        return fields

    def _validate_environment_config(self, config_data: Dict[str, Any], environment: str) -> None:
        """
        Validate environment configuration structure.

        Args:
            config_data: Configuration data to validate
            environment: Environment name to validate

        Raises:
            GeoLiveConfigurationError: If configuration is invalid
        """
        if "environments" not in config_data:
            raise GeoLiveConfigurationError("Missing 'environments' key in configuration")

        if environment not in config_data["environments"]:
            available_envs = list(config_data["environments"].keys())
            raise GeoLiveConfigurationError(
                f"Environment '{environment}' not found. Available: {available_envs}"
            )

        env_config = config_data["environments"][environment]
        shared_config = config_data.get("shared", {})

        for key in self.REQUIRED_ENVIRONMENT_KEYS:
            if key not in env_config and key not in shared_config:
                raise GeoLiveConfigurationError(
                    f"Missing required key '{key}' in {environment} configuration"
                )

    def clear_cache(self) -> None:
        """Clear the configuration cache."""
        self.load_environment_config.cache_clear()
        self.logger.info("Configuration cache cleared")
