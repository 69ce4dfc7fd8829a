"""Configuration module."""

from tickerdeck.core.config.settings import (
    ConfigManager,
    IngestionConfig,
    LoggingConfig,
    ProviderConfig,
    ScheduleConfig,
    StorageConfig,
    TickerdeckConfig,
    load_config_from_env,
    parse_clock_time,
)

__all__ = [
    "ConfigManager",
    "IngestionConfig",
    "LoggingConfig",
    "ProviderConfig",
    "ScheduleConfig",
    "StorageConfig",
    "TickerdeckConfig",
    "load_config_from_env",
    "parse_clock_time",
]
