"""Tests for settings and the configuration loader."""

import json
from pathlib import Path

import pytest
import yaml

from assetsync.config import AppSettings, ConfigLoader, ConfigurationError, load_config_from_env
from assetsync.connectivity import ManualConnectivityMonitor
from assetsync.core import SyncCoordinator


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer environment variables out of the tests."""
    for name in (
        "ASSETSYNC_CONFIG_FILE",
        "ASSETSYNC_LOCAL_ROOT",
        "ASSETSYNC_REMOTE_ROOT",
        "ASSETSYNC_LISTING_TIMEOUT",
        "ASSETSYNC_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


def create_test_config_data(tmp_path):
    return {
        "environment": "development",
        "storage": {
            "local_root": str(tmp_path / "local"),
            "remote_root": str(tmp_path / "replicated" / "Documents"),
        },
        "sync": {
            "listing_timeout_seconds": 4,
            "connectivity_grace_seconds": 1.5,
            "deduplicate_catalog": True,
        },
        "codec": {"jpeg_quality": 90},
        "logging": {"level": "DEBUG", "format": "json"},
    }


class TestSettings:
    """Test default settings."""

    def test_defaults(self):
        settings = AppSettings()

        assert settings.storage.remote_root is None
        assert settings.sync.listing_timeout_seconds == 5.0
        assert settings.sync.deduplicate_catalog is False
        assert settings.codec.jpeg_quality == 100

    def test_scratch_dir_defaults_inside_local_root(self, tmp_path):
        settings = AppSettings(storage={"local_root": str(tmp_path)})

        assert settings.storage.resolve_scratch_dir() == tmp_path / ".staging"


class TestConfigLoader:
    """Test loading configuration files."""

    def test_load_yaml(self, tmp_path):
        config_file = tmp_path / "assetsync.yaml"
        config_file.write_text(yaml.safe_dump(create_test_config_data(tmp_path)))

        config = ConfigLoader().load_from_file(config_file)

        assert config.storage.remote_root == tmp_path / "replicated" / "Documents"
        assert config.sync.listing_timeout_seconds == 4
        assert config.sync.deduplicate_catalog is True
        assert config.logging.level == "DEBUG"

    def test_load_json(self, tmp_path):
        config_file = tmp_path / "assetsync.json"
        config_file.write_text(json.dumps(create_test_config_data(tmp_path)))

        config = ConfigLoader().load_from_file(config_file)

        assert config.codec.jpeg_quality == 90

    def test_env_overrides_file_values(self, tmp_path, monkeypatch):
        config_file = tmp_path / "assetsync.yaml"
        config_file.write_text(yaml.safe_dump(create_test_config_data(tmp_path)))
        monkeypatch.setenv("ASSETSYNC_REMOTE_ROOT", str(tmp_path / "elsewhere"))
        monkeypatch.setenv("ASSETSYNC_LISTING_TIMEOUT", "9")

        config = ConfigLoader().load_from_file(config_file)

        assert config.storage.remote_root == tmp_path / "elsewhere"
        assert config.sync.listing_timeout_seconds == 9

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            ConfigLoader().load_from_file(tmp_path / "missing.yaml")

    def test_unsupported_format(self, tmp_path):
        config_file = tmp_path / "assetsync.toml"
        config_file.write_text("")

        with pytest.raises(ConfigurationError, match="Unsupported"):
            ConfigLoader().load_from_file(config_file)

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "assetsync.yaml"
        config_file.write_text("storage: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigLoader().load_from_file(config_file)

    def test_invalid_values_are_rejected(self, tmp_path):
        data = create_test_config_data(tmp_path)
        data["sync"]["listing_timeout_seconds"] = 0

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            ConfigLoader().load_from_dict(data)

    def test_validate_config_warnings(self, tmp_path):
        loader = ConfigLoader()
        same = str(tmp_path / "shared")

        no_remote = loader.validate_config(AppSettings())
        shared = loader.validate_config(
            loader.load_from_dict({"storage": {"local_root": same, "remote_root": same}})
        )

        assert any("No remote root" in w for w in no_remote)
        assert any("same directory" in w for w in shared)

    def test_save_and_reload(self, tmp_path):
        loader = ConfigLoader()
        config = loader.load_from_dict(create_test_config_data(tmp_path))
        output = tmp_path / "out" / "saved.yaml"

        loader.save_to_file(config, output)
        reloaded = loader.load_from_file(output)

        assert reloaded.storage == config.storage
        assert reloaded.sync == config.sync

    def test_load_config_from_env_file(self, tmp_path, monkeypatch):
        config_file = tmp_path / "assetsync.json"
        config_file.write_text(json.dumps(create_test_config_data(tmp_path)))
        monkeypatch.setenv("ASSETSYNC_CONFIG_FILE", str(config_file))

        config = load_config_from_env()

        assert config.storage.local_root == tmp_path / "local"


class TestCoordinatorFromSettings:
    """Test wiring a coordinator from settings."""

    def test_from_settings(self, tmp_path):
        settings = ConfigLoader().load_from_dict(create_test_config_data(tmp_path))

        coordinator = SyncCoordinator.from_settings(settings, ManualConnectivityMonitor(connected=False))

        assert coordinator.local_store.root == tmp_path / "local"
        assert coordinator.remote_store.root == tmp_path / "replicated" / "Documents"
        assert coordinator.remote_store.scratch_dir == Path(tmp_path / "local" / ".staging")
        assert coordinator.listing_timeout == 4
        assert coordinator.connectivity_grace == 1.5
        assert coordinator.catalog.deduplicate is True
        assert coordinator.codec.quality == 90
