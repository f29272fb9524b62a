"""
Tests for config_loader module.

Tests loading and validation of the sync configuration from JSON files.
"""

import json
import pytest


class TestConfigLoader:
    """Test suite for config_loader functionality."""

    @pytest.fixture(autouse=True)
    def reset_loader(self, monkeypatch):
        """Reset the config loader before each test."""
        from flowsync import config_loader
        monkeypatch.delenv("FLOWSYNC_CONFIG", raising=False)
        config_loader.reset_loader()
        yield
        config_loader.reset_loader()

    def test_load_default_config(self):
        """Test loading the bundled configuration file."""
        from flowsync import config_loader

        settings = config_loader.get_sync_settings()

        assert settings.enhanced_format_version == "2.0.0"
        assert settings.legacy_format_version == "1.0.0"
        assert settings.default_data_version == "1.0.0"
        assert settings.fidelity_warning_threshold == 80.0
        assert config_loader.get_storage_settings().store_path == "data/workflows"

    def test_load_custom_config(self, tmp_path, monkeypatch):
        """Test loading a custom configuration file via FLOWSYNC_CONFIG."""
        from flowsync import config_loader

        config_file = tmp_path / "custom.json"
        config_file.write_text(json.dumps({
            "sync": {"fidelity_warning_threshold": 50.0},
            "storage": {"store_path": "/tmp/elsewhere"},
        }))
        monkeypatch.setenv("FLOWSYNC_CONFIG", str(config_file))
        config_loader.reset_loader()

        assert config_loader.get_config_path() == str(config_file)
        assert config_loader.get_sync_settings().fidelity_warning_threshold == 50.0
        assert config_loader.get_sync_settings().enhanced_format_version == "2.0.0"
        assert config_loader.get_storage_settings().store_path == "/tmp/elsewhere"

    def test_missing_config_falls_back_to_defaults(self, tmp_path, monkeypatch):
        """Test that a missing config file yields default settings."""
        from flowsync import config_loader

        monkeypatch.setenv("FLOWSYNC_CONFIG", str(tmp_path / "nope.json"))
        config_loader.reset_loader()

        settings = config_loader.get_sync_settings()
        assert settings.fidelity_warning_threshold == 80.0

    def test_invalid_json_falls_back_to_defaults(self, tmp_path, monkeypatch):
        """Test that invalid JSON yields default settings."""
        from flowsync import config_loader

        config_file = tmp_path / "broken.json"
        config_file.write_text("{ not json")
        monkeypatch.setenv("FLOWSYNC_CONFIG", str(config_file))
        config_loader.reset_loader()

        assert config_loader.get_sync_settings().default_data_version == "1.0.0"

    def test_out_of_range_threshold_falls_back_to_defaults(self, tmp_path, monkeypatch):
        """Test that a threshold outside 0-100 is rejected."""
        from flowsync import config_loader

        config_file = tmp_path / "bad_threshold.json"
        config_file.write_text(json.dumps({"sync": {"fidelity_warning_threshold": 150}}))
        monkeypatch.setenv("FLOWSYNC_CONFIG", str(config_file))
        config_loader.reset_loader()

        assert config_loader.get_sync_settings().fidelity_warning_threshold == 80.0

    def test_reload_config(self, tmp_path, monkeypatch):
        """Test that reload_config picks up changes on disk."""
        from flowsync import config_loader

        config_file = tmp_path / "reload.json"
        config_file.write_text(json.dumps({"sync": {"default_data_version": "3.0.0"}}))
        monkeypatch.setenv("FLOWSYNC_CONFIG", str(config_file))
        config_loader.reset_loader()
        assert config_loader.get_sync_settings().default_data_version == "3.0.0"

        config_file.write_text(json.dumps({"sync": {"default_data_version": "4.0.0"}}))
        config_loader.reload_config()
        assert config_loader.get_sync_settings().default_data_version == "4.0.0"
