# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for Designloom."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".designloom.yml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the Designloom store and MCP server.

    Loads configuration from .designloom.yml with validation and defaults.
    Problems in the file are never fatal: each bad value is reported and
    replaced by its default.
    """

    DEFAULTS = {
        "data_path": "./design",
        # Workflow categories with this many workflows or fewer are gaps
        "gap_category_threshold": 1,
        # Capability status that makes a workflow's requirement ready
        "ready_status": "implemented",
        "priority_limit": 10,
        "validate_structure": True,
        "log_level": "INFO",
        # Empty string disables the JSON log file
        "log_dir": "",
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses .designloom.yml in cwd.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return
        except OSError as e:
            logger.warning(
                f"Cannot read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            self._config = self.DEFAULTS.copy()
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            self._config = self.DEFAULTS.copy()
            return

        self._config = self.DEFAULTS.copy()
        self._validate_and_merge(loaded_config)

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value.upper() if key == "log_level" else value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is an int subclass; keep them apart
        if isinstance(value, bool) != (expected_type is bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key == "gap_category_threshold":
            return bool(value >= 0)
        elif key == "priority_limit":
            return bool(value > 0)
        elif key in ("data_path", "ready_status"):
            return bool(value.strip())
        elif key == "log_level":
            return value.upper() in LOG_LEVELS

        return True

    def override(self, key: str, value: Any) -> None:
        """Replace a value after loading (command-line flags win over the file).

        Raises:
            ConfigurationError: If the key is unknown or the value invalid.
        """
        if key not in self.DEFAULTS:
            raise ConfigurationError(f"Unknown configuration parameter '{key}'")
        if not self._validate_parameter(key, value):
            raise ConfigurationError(f"Invalid value for '{key}': {value}")
        self._config[key] = value.upper() if key == "log_level" else value

    @property
    def data_path(self) -> str:
        """Directory holding the design documents (relative paths are resolved later)."""
        value = self._config["data_path"]
        assert isinstance(value, str)
        return value

    @property
    def gap_category_threshold(self) -> int:
        """Workflow count at or below which a category is reported as a gap."""
        value = self._config["gap_category_threshold"]
        assert isinstance(value, int)
        return value

    @property
    def ready_status(self) -> str:
        value = self._config["ready_status"]
        assert isinstance(value, str)
        return value

    @property
    def priority_limit(self) -> int:
        """Default number of priority recommendations."""
        value = self._config["priority_limit"]
        assert isinstance(value, int)
        return value

    @property
    def validate_structure(self) -> bool:
        """Whether documents are structurally validated before being accepted."""
        value = self._config["validate_structure"]
        assert isinstance(value, bool)
        return value

    @property
    def log_level(self) -> str:
        value = self._config["log_level"]
        assert isinstance(value, str)
        return value

    @property
    def log_dir(self) -> Optional[Path]:
        """Directory for the JSON log file, or None when file logging is off."""
        value = self._config["log_dir"]
        assert isinstance(value, str)
        return Path(value).expanduser() if value else None
