"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from fastsync_app.config.defaults import get_default_config
from fastsync_app.config.loader import ConfigLoader
from fastsync_app.config.validation import ConfigValidator


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test that default configuration can be created."""
        config = get_default_config()
        assert config.ticker.interval_ms == 1000
        assert config.sync.path == "/fasting_state"
        assert config.sync.transport == "file"
        assert config.goals.default_goal_id == "16:8"
        assert config.logging.level == "INFO"


class TestConfigLoader:
    """Test suite for configuration loader."""

    def test_config_loader_creation(self) -> None:
        loader = ConfigLoader.create()
        assert isinstance(loader.config_dir, Path)

    def test_missing_file_means_defaults(self, tmp_path: Path) -> None:
        loader = ConfigLoader.create(tmp_path)
        config = loader.merge_config()

        assert loader.load_file_config() == {}
        assert config["ticker"]["interval_ms"] == 1000
        assert config["store"]["db_path"] == "fasting_state.db"

    def test_empty_file_means_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "fastsync.yaml").write_text("")
        loader = ConfigLoader.create(tmp_path)
        assert loader.load_file_config() == {}

    def test_file_overrides_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "fastsync.yaml").write_text(
            "sync:\n  device_id: watch\n  transport: loopback\nticker:\n  interval_ms: 500\n"
        )
        loader = ConfigLoader.create(tmp_path)
        config = loader.merge_config()

        assert config["sync"]["device_id"] == "watch"
        assert config["sync"]["transport"] == "loopback"
        assert config["ticker"]["interval_ms"] == 500
        # Other defaults should remain
        assert config["sync"]["path"] == "/fasting_state"

    def test_overrides_beat_file(self, tmp_path: Path) -> None:
        (tmp_path / "fastsync.yaml").write_text("ticker:\n  interval_ms: 500\n")
        loader = ConfigLoader.create(tmp_path)
        config = loader.merge_config({"ticker": {"interval_ms": 250}})

        assert config["ticker"]["interval_ms"] == 250

    def test_build_config(self, tmp_path: Path) -> None:
        loader = ConfigLoader.create(tmp_path)
        config = loader.build_config(loader.merge_config({"goals": {"default_goal_id": "18:6"}}))

        assert config.goals.default_goal_id == "18:6"
        assert config.sync.enabled is True

    def test_shipped_config_matches_defaults(self) -> None:
        """The repository's config/fastsync.yaml only restates defaults."""
        loader = ConfigLoader.create()
        assert loader.merge_config() == loader._dataclass_to_dict(get_default_config())


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_default_config_is_valid(self) -> None:
        loader = ConfigLoader.create()
        assert ConfigValidator.validate_config(loader.merge_config()) == []

    def test_invalid_interval(self) -> None:
        errors = ConfigValidator.validate_ticker_params({"interval_ms": 0})
        assert len(errors) == 1
        assert errors[0].field == "interval_ms"

    @pytest.mark.parametrize("value", [True, -5, 1.5, "1000"])
    def test_poll_interval_must_be_positive_int(self, value) -> None:
        errors = ConfigValidator.validate_sync_params({"poll_interval_ms": value})
        assert [e.field for e in errors] == ["poll_interval_ms"]

    def test_unknown_transport(self) -> None:
        errors = ConfigValidator.validate_sync_params({"transport": "bluetooth"})
        assert errors[0].field == "transport"

    def test_sync_path_must_be_absolute(self) -> None:
        errors = ConfigValidator.validate_sync_params({"path": "fasting_state"})
        assert errors[0].field == "path"

    def test_unknown_default_goal(self) -> None:
        errors = ConfigValidator.validate_goal_params({"default_goal_id": "72h"})
        assert errors[0].field == "default_goal_id"

    def test_memory_database_rejected(self) -> None:
        errors = ConfigValidator.validate_store_params({"db_path": ":memory:"})
        assert errors[0].field == "db_path"

    def test_log_level(self) -> None:
        assert ConfigValidator.validate_logging_params({"level": "debug"}) == []
        assert ConfigValidator.validate_logging_params({"level": "LOUD"})[0].field == "level"

    def test_unknown_keys_and_sections(self) -> None:
        errors = ConfigValidator.validate_config({
            "ticker": {"interval_ms": 1000, "jitter": 5},
            "metrics": {"enabled": True},
        })
        fields = {e.field for e in errors}
        assert fields == {"ticker.jitter", "metrics"}

    def test_section_must_be_mapping(self) -> None:
        errors = ConfigValidator.validate_config({"sync": "off"})
        assert errors[0].field == "sync"
