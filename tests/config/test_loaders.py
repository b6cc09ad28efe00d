"""
Unit tests for config.loaders module.

Tests cover:
- Path resolution (absolute vs. relative to the project root)
- YAML loading with environment variable expansion
- Error handling for missing and malformed files
"""

import os

import pytest
import yaml

from livetranslate.config.loaders import (
    _PROJ_DIR,
    load_yaml_with_env_expansion,
    resolve_config_path,
)


class TestResolveConfigPath:
    """Tests for resolve_config_path."""

    def test_absolute_path_unchanged(self, tmp_path):
        """Absolute paths are returned as-is."""
        path = str(tmp_path / "config.yaml")
        assert resolve_config_path(path) == path

    def test_relative_path_resolved_against_project_root(self):
        """Relative paths resolve under the project root."""
        resolved = resolve_config_path("config/livetranslate.yaml")
        assert resolved == os.path.join(_PROJ_DIR, "config/livetranslate.yaml")
        assert os.path.isabs(resolved)


class TestLoadYamlWithEnvExpansion:
    """Tests for load_yaml_with_env_expansion."""

    def test_expands_environment_variables(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LT_TEST_REGION", "westeurope")
        config_file = tmp_path / "config.yaml"
        config_file.write_text("azure:\n  region: ${LT_TEST_REGION}\n")

        data = load_yaml_with_env_expansion(str(config_file))

        assert data == {"azure": {"region": "westeurope"}}

    def test_empty_file_returns_empty_dict(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert load_yaml_with_env_expansion(str(config_file)) == {}

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_yaml_with_env_expansion(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("azure: [unterminated\n")
        with pytest.raises(yaml.YAMLError):
            load_yaml_with_env_expansion(str(config_file))

    def test_non_mapping_top_level_raises(self, tmp_path):
        """A YAML list at the top level is rejected."""
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- one\n- two\n")
        with pytest.raises(yaml.YAMLError, match="mapping"):
            load_yaml_with_env_expansion(str(config_file))

    def test_shipped_default_config_parses(self):
        data = load_yaml_with_env_expansion(resolve_config_path("config/livetranslate.yaml"))
        assert data["router"]["word_threshold"] == 3
        assert data["playback"]["guard_interval_ms"] == 250
        assert "api_key" not in data.get("azure", {})
