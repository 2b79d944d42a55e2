# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for configuration loading and validation."""

import logging
import tempfile
from pathlib import Path

import pytest
import yaml

from apy_intel.config import CONFIG_FILENAME, Config, ConfigurationError


def test_default_config_when_file_missing():
    """Test that defaults are used when config file is missing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        config = Config(config_path=Path(tmpdir) / "nonexistent.yml")

        assert config.libs_dir == "src/libs"
        assert config.tables_dir == "src/tables"
        assert config.module_extensions == [".py", ".apy"]
        assert config.module_index_ttl_ms == 3000
        assert config.import_list_ttl_ms == 5000
        assert config.class_body_indent == 4
        assert config.max_def_lines == 20
        assert config.max_file_size_bytes == 10 * 1024 * 1024
        assert config.watch_libraries is True


def test_defaults_not_shared_between_instances(tmp_path):
    """Mutating one instance's extension list must not leak into DEFAULTS."""
    first = Config(config_path=tmp_path / "missing.yml")
    first.module_extensions.append(".pyx")

    second = Config(config_path=tmp_path / "missing.yml")

    assert second.module_extensions == [".py", ".apy"]
    assert Config.DEFAULTS["module_extensions"] == [".py", ".apy"]


def test_default_path_is_workspace_root(tmp_path):
    """Test that .apy_intel.yml is read from the workspace root."""
    (tmp_path / CONFIG_FILENAME).write_text(yaml.dump({"libs_dir": "libraries"}))

    config = Config(workspace_root=tmp_path)

    assert config.config_path == tmp_path / CONFIG_FILENAME
    assert config.libs_dir == "libraries"
    assert config.libs_root == tmp_path / "libraries"
    assert config.tables_root == tmp_path / "src" / "tables"


def test_absolute_dirs_kept(tmp_path):
    libs = tmp_path / "elsewhere" / "libs"
    (tmp_path / CONFIG_FILENAME).write_text(yaml.dump({"libs_dir": str(libs)}))

    config = Config(workspace_root=tmp_path)

    assert config.libs_root == libs


def test_valid_config_loading(tmp_path):
    """Test loading a valid configuration file."""
    config_path = tmp_path / "config.yml"
    config_data = {
        "module_extensions": [".py", ".apyx"],
        "module_index_ttl_ms": 1000,
        "import_list_ttl_ms": 2000,
        "class_body_indent": 2,
        "max_def_lines": 40,
        "watch_libraries": False,
    }
    config_path.write_text(yaml.dump(config_data))

    config = Config(config_path=config_path)

    assert config.module_extensions == [".py", ".apyx"]
    assert config.module_index_ttl_ms == 1000
    assert config.import_list_ttl_ms == 2000
    assert config.class_body_indent == 2
    assert config.max_def_lines == 40
    assert config.watch_libraries is False
    # Defaults for unspecified values
    assert config.libs_dir == "src/libs"


def test_invalid_parameter_values(tmp_path, caplog):
    """Test that invalid parameter values are rejected and defaults used."""
    config_path = tmp_path / "config.yml"
    config_data = {
        "module_index_ttl_ms": -5,  # Invalid: must be > 0
        "import_list_ttl_ms": 0,  # Invalid: must be > 0
        "class_body_indent": True,  # Invalid: bool is not a number
        "max_def_lines": "20",  # Invalid: wrong type
        "libs_dir": "   ",  # Invalid: blank
        "watch_libraries": "yes",  # Invalid: wrong type
    }
    config_path.write_text(yaml.dump(config_data))

    with caplog.at_level(logging.WARNING):
        config = Config(config_path=config_path)

    assert config.module_index_ttl_ms == 3000
    assert config.import_list_ttl_ms == 5000
    assert config.class_body_indent == 4
    assert config.max_def_lines == 20
    assert config.libs_dir == "src/libs"
    assert config.watch_libraries is True
    assert "Invalid value for 'module_index_ttl_ms'" in caplog.text


def test_invalid_module_extensions(tmp_path):
    """Extensions must be exactly two dotted strings."""
    for bad in ([".py"], [".py", ".apy", ".pyi"], [".py", "apy"], [".py", "."], [".py", 3]):
        config_path = tmp_path / "config.yml"
        config_path.write_text(yaml.dump({"module_extensions": bad}))

        assert Config(config_path=config_path).module_extensions == [".py", ".apy"]


def test_unknown_parameters_ignored(tmp_path, caplog):
    config_path = tmp_path / "config.yml"
    config_path.write_text(yaml.dump({"unknown_key": 1, "max_def_lines": 30}))

    with caplog.at_level(logging.WARNING):
        config = Config(config_path=config_path)

    assert config.max_def_lines == 30
    assert "Unknown configuration parameter 'unknown_key'" in caplog.text


def test_empty_config_file(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("")

    assert Config(config_path=config_path).module_index_ttl_ms == 3000


def test_non_dict_config_file(tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("- just\n- a list\n")

    assert Config(config_path=config_path).libs_dir == "src/libs"


def test_malformed_yaml(tmp_path, caplog):
    config_path = tmp_path / "config.yml"
    config_path.write_text("libs_dir: [unclosed\n")

    with caplog.at_level(logging.WARNING):
        config = Config(config_path=config_path)

    assert config.libs_dir == "src/libs"
    assert "Error parsing configuration file" in caplog.text


def test_to_dict(tmp_path):
    config = Config(config_path=tmp_path / "missing.yml")

    data = config.to_dict()

    assert data["libs_dir"] == "src/libs"
    assert data["module_extensions"] == [".py", ".apy"]
    assert set(data) == set(Config.DEFAULTS)


def test_missing_workspace_root_is_critical(tmp_path):
    with pytest.raises(ConfigurationError, match="not a directory"):
        Config(workspace_root=tmp_path / "absent")
