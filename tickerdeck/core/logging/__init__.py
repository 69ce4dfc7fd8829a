"""Logging utilities for monitoring and debugging."""

from tickerdeck.core.logging.config import LogConfig
from tickerdeck.core.logging.logger import (
    configure_logging,
    current_trace_id,
    get_logger,
    log_context,
    logger,
)

__all__ = [
    "LogConfig",
    "current_trace_id",
    "get_logger",
    "configure_logging",
    "log_context",
    "logger",
]
