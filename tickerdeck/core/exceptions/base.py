"""Core exception classes for tickerdeck."""

from typing import Any


class TickerdeckError(Exception):
    """Base class for every tickerdeck error."""

    def __init__(
        self,
        message: str,
        error_code: str = "GENERAL_ERROR",
        details: dict[str, Any] | None = None,
    ):
        """Initialise the error.

        Args:
            message: human readable message
            error_code: stable machine readable code
            details: extra context attached to the error
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_payload(self) -> dict[str, Any]:
        """Return a serializable payload describing the error."""

        return {
            "code": self.error_code,
            "message": self.message,
            "details": dict(self.details),
        }


class ProviderError(TickerdeckError):
    """Network, timeout or malformed-response failure of a market-data provider."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        error_code: str = "PROVIDER_ERROR",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, error_code, details)
        self.provider_name = provider_name


class ProviderTimeoutError(ProviderError):
    """A provider call exceeded its time budget."""

    def __init__(
        self,
        message: str,
        provider_name: str,
        timeout: float | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if timeout is not None:
            super_details["timeout"] = timeout
        super().__init__(message, provider_name, "PROVIDER_TIMEOUT", super_details)
        self.timeout = timeout


class StorageError(TickerdeckError):
    """Local persistence failure."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if operation:
            super_details["operation"] = operation
        super().__init__(message, "STORAGE_ERROR", super_details)
        self.operation = operation


class DataValidationError(TickerdeckError):
    """Malformed symbol, range token or candle input."""

    def __init__(
        self,
        message: str,
        validation_errors: dict[str, Any] | None = None,
        details: dict[str, Any] | None = None,
    ):
        super_details = details or {}
        if validation_errors:
            super_details["validation_errors"] = validation_errors
        super().__init__(message, "VALIDATION_ERROR", super_details)
        self.validation_errors = validation_errors or {}


class ConfigError(TickerdeckError):
    """Invalid configuration value."""

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message, "CONFIG_ERROR", {"key": key} if key else None)
        self.key = key


class SchedulerError(TickerdeckError):
    """Invalid use of the task registry."""

    def __init__(self, message: str, task_name: str | None = None):
        super().__init__(message, "SCHEDULER_ERROR", {"task": task_name} if task_name else None)
        self.task_name = task_name
