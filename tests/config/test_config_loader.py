"""
Unit tests for ConfigLoader class.

This module contains tests for configuration loading, shared-section
merging, validation, and error handling.
"""

import json
import tempfile
from pathlib import Path

import pytest

from geolive.live_query.engine import EngineSettings
from geolive.live_query.records import DEFAULT_FIELDS, RecordFieldMapping
from geolive_core.config import ConfigLoader
from geolive_core.exceptions import GeoLiveConfigurationError


class TestConfigLoader:
    """Test suite for ConfigLoader class."""

    @pytest.fixture
    def temp_config_dir(self):
        """Create a temporary directory for configuration files."""
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    @pytest.fixture
    def valid_environment_config(self):
        """Valid environment configuration with a shared section."""
        return {
            "shared": {
                "engine": {
                    "geohash_precision": 10,
                    "gc_interval_seconds": 10.0,
                    "cleanup_threshold": 25
                },
                "record_fields": {
                    "geohash_field": "g",
                    "location_field": "l",
                    "payload_field": "d"
                }
            },
            "environments": {
                "development": {
                    "logging": {"level": "DEBUG", "format": "standard"},
                    "engine": {"refetch_attempts": 3, "cleanup_threshold": 5}
                },
                "production": {
                    "logging": {"level": "INFO", "format": "json"},
                    "engine": {"refetch_attempts": 5}
                }
            }
        }

    @pytest.fixture
    def config_loader(self, temp_config_dir):
        """Create ConfigLoader instance with temporary directory."""
        loader = ConfigLoader(config_dir=str(temp_config_dir))
        yield loader
        loader.clear_cache()

    def _write_config(self, config_dir, config):
        with open(config_dir / "environment_config.json", 'w') as f:
            json.dump(config, f)

    def test_init_default_config_dir(self):
        """Test ConfigLoader initialization with default config directory."""
        assert ConfigLoader().config_dir == Path("config")

    def test_init_custom_config_dir(self, temp_config_dir):
        """Test ConfigLoader initialization with custom config directory."""
        assert ConfigLoader(config_dir=str(temp_config_dir)).config_dir == temp_config_dir

    def test_load_environment_config_success(self, config_loader, temp_config_dir, valid_environment_config):
        """Shared sections are merged into the environment."""
        self._write_config(temp_config_dir, valid_environment_config)

        config = config_loader.load_environment_config("development")

        assert config["logging"]["level"] == "DEBUG"
        assert config["record_fields"]["geohash_field"] == "g"
        assert config["engine"]["geohash_precision"] == 10
        assert config["engine"]["refetch_attempts"] == 3

    def test_environment_values_override_shared(self, config_loader, temp_config_dir, valid_environment_config):
        """Environment engine values win over shared ones."""
        self._write_config(temp_config_dir, valid_environment_config)

        engine = config_loader.get_engine_config("development")

        assert engine["cleanup_threshold"] == 5
        assert engine["gc_interval_seconds"] == 10.0

    def test_load_environment_config_file_not_found(self, config_loader):
        """Test loading environment configuration when file doesn't exist."""
        with pytest.raises(GeoLiveConfigurationError, match="not found"):
            config_loader.load_environment_config("development")

    def test_load_environment_config_invalid_json(self, config_loader, temp_config_dir):
        """Test loading configuration with invalid JSON."""
        (temp_config_dir / "environment_config.json").write_text("{ invalid json }")

        with pytest.raises(GeoLiveConfigurationError, match="Invalid JSON"):
            config_loader.load_environment_config("development")

    def test_missing_environments_key(self, config_loader, temp_config_dir):
        """The environments section is mandatory."""
        self._write_config(temp_config_dir, {"shared": {}})

        with pytest.raises(GeoLiveConfigurationError, match="Missing 'environments'"):
            config_loader.load_environment_config("development")

    def test_unknown_environment(self, config_loader, temp_config_dir, valid_environment_config):
        """An unknown environment lists the available ones."""
        self._write_config(temp_config_dir, valid_environment_config)

        with pytest.raises(GeoLiveConfigurationError, match="'staging' not found"):
            config_loader.load_environment_config("staging")

    def test_missing_required_key(self, config_loader, temp_config_dir):
        """logging and engine must come from the environment or shared section."""
        self._write_config(temp_config_dir, {
            "environments": {"development": {"engine": {}}}
        })

        with pytest.raises(GeoLiveConfigurationError, match="Missing required key 'logging'"):
            config_loader.load_environment_config("development")

    def test_required_key_from_shared(self, config_loader, temp_config_dir):
        """A required key supplied only by the shared section is accepted."""
        self._write_config(temp_config_dir, {
            "shared": {"engine": {"cleanup_threshold": 7}},
            "environments": {"development": {"logging": {"level": "INFO"}}}
        })

        assert config_loader.get_engine_config("development") == {"cleanup_threshold": 7}

    def test_get_logging_config(self, config_loader, temp_config_dir, valid_environment_config):
        self._write_config(temp_config_dir, valid_environment_config)

        assert config_loader.get_logging_config("production") == {"level": "INFO", "format": "json"}

    def test_get_record_fields(self, config_loader, temp_config_dir, valid_environment_config):
        self._write_config(temp_config_dir, valid_environment_config)

        fields = config_loader.get_record_fields("development")

        assert fields == {"geohash_field": "g", "location_field": "l", "payload_field": "d"}

    def test_get_record_fields_unknown_key(self, config_loader, temp_config_dir, valid_environment_config):
        """Unknown record field keys are rejected."""
        valid_environment_config["shared"]["record_fields"]["timestamp_field"] = "t"
        self._write_config(temp_config_dir, valid_environment_config)

        with pytest.raises(GeoLiveConfigurationError, match="Unknown record field keys"):
            config_loader.get_record_fields("development")

    def test_get_record_fields_defaults_to_empty(self, config_loader, temp_config_dir):
        self._write_config(temp_config_dir, {
            "environments": {"development": {"logging": {}, "engine": {}}}
        })

        assert config_loader.get_record_fields("development") == {}

    def test_load_environment_config_is_cached(self, config_loader, temp_config_dir, valid_environment_config):
        """A second load is served from the cache until clear_cache()."""
        self._write_config(temp_config_dir, valid_environment_config)
        first = config_loader.load_environment_config("development")

        (temp_config_dir / "environment_config.json").unlink()

        assert config_loader.load_environment_config("development") is first
        config_loader.clear_cache()
        with pytest.raises(GeoLiveConfigurationError):
            config_loader.load_environment_config("development")

    def test_engine_settings_from_config(self, config_loader, temp_config_dir, valid_environment_config):
        """Engine settings are built from the merged engine section."""
        self._write_config(temp_config_dir, valid_environment_config)

        settings = EngineSettings.from_config(config_loader, "production")

        assert settings.refetch_attempts == 5
        assert settings.cleanup_threshold == 25
        assert settings.cleanup_delay_seconds == 0.01

    def test_engine_settings_from_invalid_config(self, config_loader, temp_config_dir, valid_environment_config):
        """Out-of-range engine values raise a configuration error."""
        valid_environment_config["environments"]["development"]["engine"]["refetch_attempts"] = 0
        self._write_config(temp_config_dir, valid_environment_config)

        with pytest.raises(GeoLiveConfigurationError, match="Invalid engine configuration"):
            EngineSettings.from_config(config_loader, "development")

    def test_record_fields_from_config(self, config_loader, temp_config_dir, valid_environment_config):
        """Configured names override the defaults, missing ones keep them."""
        valid_environment_config["environments"]["production"]["record_fields"] = {"payload_field": "data"}
        self._write_config(temp_config_dir, valid_environment_config)

        fields = RecordFieldMapping.from_config(config_loader, "production")

        assert fields == RecordFieldMapping(geohash_field="g", location_field="l", payload_field="data")

    def test_record_fields_from_config_defaults(self, config_loader, temp_config_dir):
        self._write_config(temp_config_dir, {
            "environments": {"development": {"logging": {}, "engine": {}}}
        })

        assert RecordFieldMapping.from_config(config_loader, "development") == DEFAULT_FIELDS

    def test_record_fields_from_invalid_config(self, config_loader, temp_config_dir, valid_environment_config):
        valid_environment_config["shared"]["record_fields"]["geohash_field"] = ""
        self._write_config(temp_config_dir, valid_environment_config)

        with pytest.raises(GeoLiveConfigurationError, match="Invalid record field configuration"):
            RecordFieldMapping.from_config(config_loader, "development")


class TestRepositoryConfiguration:
    """The shipped configuration file loads for every environment."""

    @pytest.fixture
    def repo_config_loader(self):
        loader = ConfigLoader(config_dir=str(Path(__file__).resolve().parents[2] / "config"))
        yield loader
        loader.clear_cache()

    @pytest.mark.parametrize("environment", ["development", "production"])
    def test_shipped_config_is_valid(self, repo_config_loader, environment):
        settings = EngineSettings.from_config(repo_config_loader, environment)

        assert settings.geohash_precision == 10
        assert settings.cleanup_threshold == 25
        assert RecordFieldMapping.from_config(repo_config_loader, environment) == DEFAULT_FIELDS
