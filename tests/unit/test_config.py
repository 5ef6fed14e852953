"""
Tests for retailops.config module.
"""
import dataclasses

import pytest

from retailops.config import (
    AlertConfig,
    AppConfig,
    ConfigurationError,
    DatabaseConfig,
    LoggingConfig,
    config,
    validate_config,
)


class TestDefaults:
    """Tests for default configuration values."""

    def test_alert_defaults(self):
        """Alert thresholds default to the documented values."""
        alerts = AlertConfig()
        assert alerts.low_stock_threshold == 10
        assert alerts.shipping_delay_days == 5
        assert alerts.max_payment_failure_rate == 20.0

    def test_global_config_valid(self):
        """The shipped defaults pass validation."""
        validate_config(config)

    def test_frozen(self):
        """Config objects are immutable."""
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.alerts.low_stock_threshold = 1


class TestEnvironment:
    """Tests for environment-driven values."""

    def test_db_path_from_env(self, monkeypatch):
        monkeypatch.setenv("RETAILOPS_DB_PATH", "/tmp/retail.duckdb")
        db = DatabaseConfig()
        assert db.path == "/tmp/retail.duckdb"
        assert not db.is_memory

    def test_memory_default(self, monkeypatch):
        monkeypatch.delenv("RETAILOPS_DB_PATH", raising=False)
        assert DatabaseConfig().is_memory

    @pytest.mark.parametrize("raw,expected", [("1", True), ("true", True), ("no", False)])
    def test_log_json_flag(self, monkeypatch, raw, expected):
        monkeypatch.setenv("LOG_JSON", raw)
        assert LoggingConfig().json_format is expected


class TestValidateConfig:
    """Tests for validate_config function."""

    def test_invalid_values_collected(self):
        """All problems are reported in one error."""
        bad = AppConfig(
            database=DatabaseConfig(path="", query_timeout=0, reader_threads=0),
            alerts=AlertConfig(max_payment_failure_rate=150),
            logging=LoggingConfig(level="LOUD", json_format=False),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(bad)

        message = str(exc_info.value)
        assert "RETAILOPS_DB_PATH" in message
        assert "RETAILOPS_QUERY_TIMEOUT" in message
        assert "RETAILOPS_READER_THREADS" in message
        assert "max_payment_failure_rate" in message
        assert "LOG_LEVEL" in message
