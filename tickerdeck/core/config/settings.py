"""Configuration management for tickerdeck."""

from __future__ import annotations

import os
import tomllib
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tickerdeck.core.exceptions import ConfigError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.logging.config import LEVELS

logger = get_logger(__name__)

DEFAULT_HOME = Path.home() / ".tickerdeck"

DEFAULT_SYMBOLS = ["AAPL", "MSFT", "GOOGL", "META", "NVDA", "TSLA", "AMZN"]


@dataclass
class StorageConfig:
    """Storage settings."""

    database: str = str(DEFAULT_HOME / "tickerdeck.duckdb")
    threads: int = 1


@dataclass
class ProviderConfig:
    """Market-data provider settings."""

    name: str = "yfinance"
    timeout: float = 15.0
    max_concurrency: int = 4


@dataclass
class IngestionConfig:
    """Ingestion and retention settings."""

    symbols: list[str] = field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    fine_retention_days: int = 30
    fine_interval: str = "5m"
    daily_lookback_days: int = 5
    initial_history_years: int = 5
    initial_intraday_days: int = 7
    market_timezone: str = "America/New_York"


@dataclass
class ScheduleConfig:
    """Update cycle schedule."""

    price_interval_minutes: int = 5
    daily_update_time: str = "16:30"
    cleanup_time: str = "02:00"
    poll_seconds: int = 60


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None


@dataclass
class TickerdeckConfig:
    """Root configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Reject values the rest of the system cannot work with."""

        if self.provider.timeout <= 0:
            raise ConfigError("provider timeout must be positive", "provider.timeout")
        if self.provider.max_concurrency < 1:
            raise ConfigError("max_concurrency must be at least 1", "provider.max_concurrency")
        if self.ingestion.fine_retention_days < 1:
            raise ConfigError("fine_retention_days must be at least 1", "ingestion.fine_retention_days")
        if self.schedule.price_interval_minutes < 1:
            raise ConfigError("price_interval_minutes must be at least 1", "schedule.price_interval_minutes")
        if self.logging.level.strip().upper() not in LEVELS:
            raise ConfigError(f"unknown log level {self.logging.level!r}", "logging.level")
        for key in ("daily_update_time", "cleanup_time"):
            parse_clock_time(getattr(self.schedule, key), f"schedule.{key}")
        try:
            ZoneInfo(self.ingestion.market_timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(
                f"unknown timezone {self.ingestion.market_timezone!r}", "ingestion.market_timezone"
            ) from exc

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> TickerdeckConfig:
        """Build a configuration from a nested dictionary."""

        try:
            return cls(
                storage=StorageConfig(**config_dict.get("storage", {})),
                provider=ProviderConfig(**config_dict.get("provider", {})),
                ingestion=IngestionConfig(**config_dict.get("ingestion", {})),
                schedule=ScheduleConfig(**config_dict.get("schedule", {})),
                logging=LoggingConfig(**config_dict.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigError(f"invalid configuration: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage": asdict(self.storage),
            "provider": asdict(self.provider),
            "ingestion": asdict(self.ingestion),
            "schedule": asdict(self.schedule),
            "logging": asdict(self.logging),
        }


def parse_clock_time(value: str, key: str = "time") -> tuple[int, int]:
    """Parse ``HH:MM`` into an ``(hour, minute)`` tuple."""

    try:
        hour_text, minute_text = value.split(":")
        hour, minute = int(hour_text), int(minute_text)
    except (AttributeError, ValueError) as exc:
        raise ConfigError(f"expected HH:MM, got {value!r}", key) from exc
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ConfigError(f"time out of range: {value!r}", key)
    return hour, minute


def _deep_update(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict):
            base[key] = _deep_update(base.get(key, {}), value)
        else:
            base[key] = value
    return base


class ConfigManager:
    """Loads configuration from a TOML file overlaid with environment variables."""

    def __init__(self, config_path: Path | None = None, *, use_env: bool = True):
        self.config_path = config_path or DEFAULT_HOME / "config.toml"
        self.use_env = use_env
        self.config = self._load_config()

    def _load_config(self) -> TickerdeckConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as exc:
                logger.warning(f"Failed to load config from {self.config_path}: {exc}; using defaults")
                config_dict = {}
        if self.use_env:
            _deep_update(config_dict, load_config_from_env())
        return TickerdeckConfig.from_dict(config_dict)

    def get_config(self) -> TickerdeckConfig:
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Apply nested updates and re-validate."""

        self.config = TickerdeckConfig.from_dict(_deep_update(self.config.to_dict(), updates))


_ENV_PREFIX = "TICKERDECK_"

_SECTIONS: dict[str, type] = {
    "storage": StorageConfig,
    "provider": ProviderConfig,
    "ingestion": IngestionConfig,
    "schedule": ScheduleConfig,
    "logging": LoggingConfig,
}


def _coerce_env(raw: str, template: Any, key: str) -> Any:
    if isinstance(template, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(template, int):
        try:
            return int(raw)
        except ValueError as exc:
            raise ConfigError(f"expected integer for {key}, got {raw!r}", key) from exc
    if isinstance(template, float):
        try:
            return float(raw)
        except ValueError as exc:
            raise ConfigError(f"expected number for {key}, got {raw!r}", key) from exc
    if isinstance(template, list):
        return [item.strip().upper() for item in raw.split(",") if item.strip()]
    return raw


def load_config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Read ``TICKERDECK_<SECTION>_<FIELD>`` variables into a nested dictionary.

    ``TICKERDECK_INGESTION_SYMBOLS=AAPL,MSFT`` becomes
    ``{"ingestion": {"symbols": ["AAPL", "MSFT"]}}``.
    """

    environ = dict(os.environ if environ is None else environ)
    config: dict[str, Any] = {}
    for section, section_cls in _SECTIONS.items():
        defaults = section_cls()
        for config_field in fields(section_cls):
            env_name = f"{_ENV_PREFIX}{section.upper()}_{config_field.name.upper()}"
            raw = environ.get(env_name)
            if raw is None:
                continue
            value = _coerce_env(raw, getattr(defaults, config_field.name), f"{section}.{config_field.name}")
            config.setdefault(section, {})[config_field.name] = value
    return config


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
