"""
Centralized configuration for the retail operations engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from retailops.config import config

    db_path = config.database.path
    threshold = config.alerts.low_stock_threshold
"""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DatabaseConfig:
    """DuckDB store configuration."""

    path: str = field(default_factory=lambda: os.getenv("RETAILOPS_DB_PATH", ":memory:"))
    query_timeout: float = field(
        default_factory=lambda: float(os.getenv("RETAILOPS_QUERY_TIMEOUT", "30"))
    )
    reader_threads: int = field(
        default_factory=lambda: int(os.getenv("RETAILOPS_READER_THREADS", "4"))
    )

    @property
    def is_memory(self) -> bool:
        return self.path == ":memory:"


@dataclass(frozen=True)
class AlertConfig:
    """Default thresholds for the alerting engine."""

    low_stock_threshold: int = 10
    shipping_delay_days: int = 5
    max_payment_failure_rate: float = 20.0  # percent


@dataclass(frozen=True)
class AnalyticsConfig:
    """Analytics query limits."""

    default_top_n: int = 10
    max_limit: int = 1000
    slow_query_ms: float = 1000


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    json_format: bool = field(default_factory=lambda: _env_bool("LOG_JSON"))


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "0.1.0"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    alerts: AlertConfig = field(default_factory=AlertConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global config instance
config = AppConfig()


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None) -> None:
    """
    Validate configuration values.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    cfg = app_config or config
    errors = []

    if not cfg.database.path:
        errors.append("RETAILOPS_DB_PATH must not be empty")

    if cfg.database.query_timeout <= 0:
        errors.append("RETAILOPS_QUERY_TIMEOUT must be positive")

    if cfg.database.reader_threads < 1:
        errors.append("RETAILOPS_READER_THREADS must be at least 1")

    if cfg.alerts.low_stock_threshold < 0:
        errors.append("low_stock_threshold must be non-negative")

    if cfg.alerts.shipping_delay_days < 0:
        errors.append("shipping_delay_days must be non-negative")

    if not 0 <= cfg.alerts.max_payment_failure_rate <= 100:
        errors.append("max_payment_failure_rate must be between 0 and 100")

    if cfg.logging.level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        errors.append(f"LOG_LEVEL is invalid: {cfg.logging.level}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
