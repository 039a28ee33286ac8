# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import tempfile
from pathlib import Path

import pytest
import yaml

from designloom.config import Config, ConfigurationError


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "nonexistent.yml"
        config = Config(config_path=config_path)

        # Check all defaults
        assert config.data_path == "./design"
        assert config.gap_category_threshold == 1
        assert config.ready_status == "implemented"
        assert config.priority_limit == 10
        assert config.validate_structure is True
        assert config.log_level == "INFO"
        assert config.log_dir is None


def test_valid_config_loading():
    """Test loading a valid configuration file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "data_path": "docs/design",
            "gap_category_threshold": 3,
            "priority_limit": 5,
            "log_level": "debug",
            "log_dir": "logs",
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.data_path == "docs/design"
        assert config.gap_category_threshold == 3
        assert config.priority_limit == 5
        assert config.log_level == "DEBUG"
        assert config.log_dir == Path("logs")
        # Defaults for unspecified values
        assert config.ready_status == "implemented"


def test_invalid_parameter_values():
    """Test that invalid parameter values are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "gap_category_threshold": -1,  # Invalid: must be >= 0
            "priority_limit": 0,  # Invalid: must be > 0
            "data_path": "   ",  # Invalid: must not be blank
            "log_level": "VERBOSE",  # Invalid: unknown level
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        # Should use defaults for invalid values
        assert config.gap_category_threshold == 1
        assert config.priority_limit == 10
        assert config.data_path == "./design"
        assert config.log_level == "INFO"


def test_invalid_parameter_types():
    """Test that invalid parameter types are rejected and defaults used."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_data = {
            "gap_category_threshold": "two",
            "priority_limit": True,  # bool is not accepted for an int
            "validate_structure": "yes",
        }

        with open(config_path, "w") as f:
            yaml.dump(config_data, f)

        config = Config(config_path=config_path)

        assert config.gap_category_threshold == 1
        assert config.priority_limit == 10
        assert config.validate_structure is True


def test_unknown_parameters_ignored():
    """Test that unknown parameters are ignored with a warning."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"

        with open(config_path, "w") as f:
            yaml.dump({"watch_files": True, "priority_limit": 3}, f)

        config = Config(config_path=config_path)

        assert config.priority_limit == 3
        assert "watch_files" not in config._config


def test_empty_config_file():
    """Test that an empty file falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("")

        config = Config(config_path=config_path)

        assert config.priority_limit == 10


def test_malformed_yaml():
    """Test that malformed YAML falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("data_path: [unclosed\n")

        config = Config(config_path=config_path)

        assert config.data_path == "./design"


def test_non_dict_yaml():
    """Test that a YAML list falls back to defaults."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "config.yml"
        config_path.write_text("- data_path\n- priority_limit\n")

        config = Config(config_path=config_path)

        assert config.gap_category_threshold == 1


def test_override(default_config):
    """Test command-line style overrides."""
    default_config.override("data_path", "/srv/design")
    default_config.override("log_level", "warning")

    assert default_config.data_path == "/srv/design"
    assert default_config.log_level == "WARNING"


def test_override_rejects_bad_values(default_config):
    with pytest.raises(ConfigurationError):
        default_config.override("priority_limit", 0)
    with pytest.raises(ConfigurationError):
        default_config.override("no_such_key", 1)
