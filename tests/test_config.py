"""Tests for TrackerConfig loading."""
from pathlib import Path

import pytest
import yaml

from tracker.config import TrackerConfig, ConfigError


class TestTrackerConfig:

    def _write_config(self, tmp_path, config) -> Path:
        config_file = tmp_path / "tracker.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config, f)
        return config_file

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TRACKER_DB", raising=False)
        cfg = TrackerConfig.load(str(tmp_path / "absent.yaml"))
        assert cfg.storage_key == "projects"
        assert cfg.autosave_delay_ms == 0
        assert cfg.port == 3000
        assert "~" not in cfg.db_path

    def test_loads_values_and_ignores_unknown_keys(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TRACKER_DB", raising=False)
        config_file = self._write_config(tmp_path, {
            "db_path": str(tmp_path / "data.db"),
            "autosave_delay_ms": 250,
            "port": 8080,
            "theme": "dark",
        })
        cfg = TrackerConfig.load(str(config_file))
        assert cfg.db_path == str(tmp_path / "data.db")
        assert cfg.autosave_delay_secs == 0.25
        assert cfg.port == 8080
        assert not hasattr(cfg, "theme")

    def test_env_overrides_db_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TRACKER_DB", str(tmp_path / "env.db"))
        config_file = self._write_config(tmp_path, {"db_path": "/elsewhere.db"})
        assert TrackerConfig.load(str(config_file)).db_path == str(tmp_path / "env.db")

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        config_file = self._write_config(tmp_path, {"storage_key": "other"})
        monkeypatch.setenv("TRACKER_CONFIG", str(config_file))
        assert TrackerConfig.load().storage_key == "other"

    def test_invalid_yaml_raises(self, tmp_path):
        config_file = tmp_path / "tracker.yaml"
        config_file.write_text("port: [unclosed")
        with pytest.raises(ConfigError):
            TrackerConfig.load(str(config_file))

    def test_non_mapping_raises(self, tmp_path):
        config_file = self._write_config(tmp_path, ["a", "b"])
        with pytest.raises(ConfigError, match="mapping"):
            TrackerConfig.load(str(config_file))

    def test_api_secret_from_env(self, monkeypatch):
        cfg = TrackerConfig(api_secret_env="TEST_TRACKER_SECRET")
        monkeypatch.delenv("TEST_TRACKER_SECRET", raising=False)
        assert cfg.api_secret == ""
        monkeypatch.setenv("TEST_TRACKER_SECRET", " s3cret ")
        assert cfg.api_secret == "s3cret"
