"""Unit tests for configuration management."""

import shutil
import tempfile
from pathlib import Path

import pytest

from signal_app.config.defaults import get_default_config
from signal_app.config.loader import CONFIG_ENV_VAR, ConfigLoader
from signal_app.config.validation import ConfigValidator


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        """Test that default configuration can be created."""
        config = get_default_config()
        assert config.scheduler.admission_interval_seconds == 60.0
        assert config.scheduler.expiry_interval_seconds == 10.0
        assert config.scheduler.timezone == "Europe/Moscow"
        assert config.activation.poll_interval_seconds == 5.0
        assert config.activation.max_wait_seconds == 300.0
        assert config.notifications.telegram_bot_token is None
        assert config.api.status_cache_seconds == 3


class TestConfigLoader:
    """Test suite for configuration loader."""

    def setup_method(self) -> None:
        self.temp_dir = tempfile.mkdtemp()
        self.config_path = Path(self.temp_dir) / "app.yaml"

    def teardown_method(self) -> None:
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_create_uses_environment_variable(self, monkeypatch) -> None:
        """Test that SIGNAL_APP_CONFIG selects the config file."""
        monkeypatch.setenv(CONFIG_ENV_VAR, str(self.config_path))
        loader = ConfigLoader.create()
        assert loader.config_path == self.config_path

    def test_missing_file_yields_defaults(self) -> None:
        """Test config merging with defaults only."""
        loader = ConfigLoader.create(self.config_path)
        config = loader.load()
        assert config == get_default_config()

    def test_file_values_override_defaults(self) -> None:
        """Test that YAML values take precedence over defaults."""
        self.config_path.write_text(
            "database:\n"
            "  path: /tmp/other.db\n"
            "scheduler:\n"
            "  admission_interval_seconds: 30\n"
        )
        loader = ConfigLoader.create(self.config_path)
        config = loader.load()

        assert config.database.path == "/tmp/other.db"
        assert config.scheduler.admission_interval_seconds == 30
        assert config.scheduler.expiry_interval_seconds == 10.0

    def test_overrides_take_highest_priority(self) -> None:
        """Test that explicit overrides beat the YAML file."""
        self.config_path.write_text("api:\n  port: 8000\n")
        loader = ConfigLoader.create(self.config_path)
        config = loader.load({"api": {"port": 9000}})

        assert config.api.port == 9000
        assert config.api.host == "0.0.0.0"

    def test_unknown_keys_are_ignored(self) -> None:
        """Test that unknown keys in a section do not break loading."""
        self.config_path.write_text("logging:\n  level: DEBUG\n  colour: true\n")
        config = ConfigLoader.create(self.config_path).load()
        assert config.logging.level == "DEBUG"

    def test_empty_file(self) -> None:
        self.config_path.write_text("")
        assert ConfigLoader.create(self.config_path).load_file_config() == {}


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_valid_defaults(self) -> None:
        """Test that the merged defaults validate cleanly."""
        loader = ConfigLoader.create(Path("/nonexistent/app.yaml"))
        assert ConfigValidator.validate_config(loader.merge_config()) == []

    @pytest.mark.parametrize("value", [0, -1, "60", True])
    def test_invalid_admission_interval(self, value) -> None:
        errors = ConfigValidator.validate_scheduler_params({"admission_interval_seconds": value})
        assert len(errors) == 1
        assert errors[0].field == "admission_interval_seconds"

    def test_invalid_timezone(self) -> None:
        errors = ConfigValidator.validate_scheduler_params({"timezone": "Mars/Olympus"})
        assert [e.field for e in errors] == ["timezone"]

    def test_invalid_activation_params(self) -> None:
        errors = ConfigValidator.validate_activation_params({
            "poll_interval_seconds": 0,
            "max_wait_seconds": -5,
            "max_workers": 2.5,
        })
        fields = {e.field for e in errors}
        assert fields == {"poll_interval_seconds", "max_wait_seconds", "max_workers"}

    def test_logging_level(self) -> None:
        assert ConfigValidator.validate_logging_params({"level": "debug"}) == []
        errors = ConfigValidator.validate_config({"logging": {"level": "LOUD"}})
        assert [e.field for e in errors] == ["level"]

    def test_zero_max_wait_is_allowed(self) -> None:
        assert ConfigValidator.validate_activation_params({"max_wait_seconds": 0}) == []

    def test_time_ranges(self) -> None:
        """Test request range validation reports each malformed bound."""
        errors = ConfigValidator.validate_time_ranges([
            {"start": "22:00", "end": "02:00"},
            {"start": "25:00", "end": "02:00"},
            "09:00-10:00",
        ])
        assert [e.field for e in errors] == [
            "signal_request_ranges[1].start",
            "signal_request_ranges[2]",
        ]

    def test_time_ranges_not_a_list(self) -> None:
        errors = ConfigValidator.validate_time_ranges({"start": "22:00"})
        assert errors[0].field == "signal_request_ranges"
