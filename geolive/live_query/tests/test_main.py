"""Tests for the geolive command-line entry point."""

from unittest.mock import patch

import pytest

from geolive.live_query.main import main


@pytest.fixture(autouse=True)
def mock_setup_logging():
    # setup_logging replaces the root handlers, which would hide pytest's own
    with patch("geolive.live_query.main.setup_logging") as mock_setup:
        yield mock_setup


class TestMain:
    """Test suite for the geolive CLI."""

    def test_encode(self, capsys):
        assert main(["--log-level", "WARNING", "encode", "0", "0"]) == 0
        assert capsys.readouterr().out.strip() == "7zzzzzzzzz"

    def test_encode_with_precision(self, capsys):
        assert main(["--log-level", "WARNING", "encode", "0", "0", "--precision", "3"]) == 0
        assert capsys.readouterr().out.strip() == "7zz"

    def test_distance(self, capsys):
        assert main(["--log-level", "WARNING", "distance", "0", "0", "0", "1"]) == 0
        assert capsys.readouterr().out.strip() == "111.194927"

    def test_plan_zero_radius(self, capsys):
        assert main(["--log-level", "WARNING", "plan", "0", "0", "0"]) == 0
        assert capsys.readouterr().out.splitlines() == ["0 h"]

    def test_plan_prints_one_line_per_range(self, capsys):
        assert main(["--log-level", "WARNING", "plan", "0", "0", "1"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert 1 <= len(lines) <= 9
        assert all(len(line.split()) == 2 for line in lines)

    def test_negative_radius_is_rejected(self, capsys):
        assert main(["--log-level", "WARNING", "plan", "0", "0", "-1"]) == 2
        assert capsys.readouterr().out == ""

    def test_latitude_out_of_range_is_rejected(self):
        assert main(["--log-level", "WARNING", "encode", "91", "0"]) == 2

    def test_missing_command_exits(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["--log-level", "WARNING"])
        assert exc_info.value.code == 2

    def test_log_level_override(self, mock_setup_logging):
        main(["--environment", "production", "--log-level", "ERROR", "encode", "0", "0"])

        mock_setup_logging.assert_called_once_with(environment="production", log_level="ERROR")

    def test_log_level_from_config(self, mock_setup_logging, tmp_path):
        config_dir = tmp_path / "config"
        config_dir.mkdir()
        (config_dir / "environment_config.json").write_text(
            '{"environments": {"development": {"logging": {"level": "WARNING"}, "engine": {}}}}'
        )

        main(["--environment", "development", "--config-dir", str(config_dir), "encode", "0", "0"])

        mock_setup_logging.assert_called_once_with(environment="development", log_level="WARNING")

    def test_missing_config_falls_back_to_info(self, mock_setup_logging, tmp_path, capsys):
        main(["--environment", "development", "--config-dir", str(tmp_path), "encode", "0", "0"])

        mock_setup_logging.assert_called_once_with(environment="development", log_level="INFO")
        assert "Configuration unavailable" in capsys.readouterr().err
