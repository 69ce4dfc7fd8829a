"""Exception handling module."""

from tickerdeck.core.exceptions.base import (
    ConfigError,
    DataValidationError,
    ProviderError,
    ProviderTimeoutError,
    SchedulerError,
    StorageError,
    TickerdeckError,
)

__all__ = [
    "TickerdeckError",
    "ProviderError",
    "ProviderTimeoutError",
    "StorageError",
    "DataValidationError",
    "ConfigError",
    "SchedulerError",
]
