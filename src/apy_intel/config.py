# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for APY language intelligence."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".apy_intel.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the APY language intelligence server.

    Loads configuration from .apy_intel.yml with validation and defaults.
    """

    DEFAULTS = {
        "libs_dir": "src/libs",
        "tables_dir": "src/tables",
        "module_extensions": [".py", ".apy"],  # primary first, then dialect
        "module_index_ttl_ms": 3000,
        "import_list_ttl_ms": 5000,
        "class_body_indent": 4,
        "max_def_lines": 20,
        "max_file_size_bytes": 10 * 1024 * 1024,  # 10MB
        "watch_libraries": True,
    }

    _POSITIVE_INT_KEYS = (
        "module_index_ttl_ms",
        "import_list_ttl_ms",
        "class_body_indent",
        "max_def_lines",
        "max_file_size_bytes",
    )

    def __init__(self, config_path: Optional[Path] = None, workspace_root: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses
                ``.apy_intel.yml`` in the workspace root.
            workspace_root: Directory that relative ``libs_dir`` and
                ``tables_dir`` are resolved against (default: cwd).

        Raises:
            ConfigurationError: If ``workspace_root`` is given but is not a directory.
        """
        self.workspace_root = Path(workspace_root) if workspace_root is not None else Path.cwd()
        if not self.workspace_root.is_dir():
            raise ConfigurationError(f"Workspace root is not a directory: {self.workspace_root}")
        if config_path is None:
            config_path = self.workspace_root / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        config = self.DEFAULTS.copy()
        config["module_extensions"] = list(config["module_extensions"])
        return config

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Unable to read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

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

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type):
            return False

        if key in self._POSITIVE_INT_KEYS:
            # bool is an int subclass; "ttl: true" is not a number
            return not isinstance(value, bool) and value > 0
        elif key in ("libs_dir", "tables_dir"):
            return bool(value.strip())
        elif key == "module_extensions":
            if len(value) != 2:
                return False
            return all(isinstance(ext, str) and len(ext) > 1 and ext.startswith(".") for ext in value)

        return True

    def _resolve_dir(self, value: str) -> Path:
        path = Path(value)
        if not path.is_absolute():
            path = self.workspace_root / path
        return path

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration as a JSON-compatible dict."""
        result = dict(self._config)
        result["module_extensions"] = list(self.module_extensions)
        return result

    # Property accessors for all configuration values
    @property
    def libs_dir(self) -> str:
        """Library directory, relative to the workspace root unless absolute."""
        value = self._config["libs_dir"]
        assert isinstance(value, str)
        return value

    @property
    def tables_dir(self) -> str:
        """Table schema directory, relative to the workspace root unless absolute."""
        value = self._config["tables_dir"]
        assert isinstance(value, str)
        return value

    @property
    def libs_root(self) -> Path:
        """Absolute library root."""
        return self._resolve_dir(self.libs_dir)

    @property
    def tables_root(self) -> Path:
        """Absolute table schema root."""
        return self._resolve_dir(self.tables_dir)

    @property
    def module_extensions(self) -> List[str]:
        """Recognized module extensions, primary first."""
        value = self._config["module_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def module_index_ttl_ms(self) -> int:
        """Freshness window of cached module indexes."""
        value = self._config["module_index_ttl_ms"]
        assert isinstance(value, int)
        return value

    @property
    def import_list_ttl_ms(self) -> int:
        """Freshness window of the cached top-level import list."""
        value = self._config["import_list_ttl_ms"]
        assert isinstance(value, int)
        return value

    @property
    def class_body_indent(self) -> int:
        """Minimum indentation of a method declaration inside a class body."""
        value = self._config["class_body_indent"]
        assert isinstance(value, int)
        return value

    @property
    def max_def_lines(self) -> int:
        """Maximum lines a multi-line definition header may span."""
        value = self._config["max_def_lines"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_size_bytes(self) -> int:
        """Files larger than this are treated as unreadable."""
        value = self._config["max_file_size_bytes"]
        assert isinstance(value, int)
        return value

    @property
    def watch_libraries(self) -> bool:
        """Whether to watch the library tree and invalidate caches on change."""
        value = self._config["watch_libraries"]
        assert isinstance(value, bool)
        return value
