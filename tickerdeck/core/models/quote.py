"""Live quote model built from untyped provider payloads."""

from __future__ import annotations

from datetime import UTC, datetime
from math import isfinite
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, float) and not isfinite(value))


class Quote(BaseModel):
    """A live quote; accepts Yahoo-style camelCase keys as aliases."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    symbol: str
    price: float = Field(validation_alias=AliasChoices("price", "regularMarketPrice", "last_price", "lastPrice"))
    change: float | None = Field(default=None, validation_alias=AliasChoices("change", "regularMarketChange"))
    change_percent: float | None = Field(
        default=None,
        validation_alias=AliasChoices("change_percent", "changePercent", "regularMarketChangePercent"),
    )
    volume: int = Field(default=0, validation_alias=AliasChoices("volume", "regularMarketVolume", "last_volume", "lastVolume"))
    previous_close: float | None = Field(
        default=None,
        validation_alias=AliasChoices("previous_close", "previousClose", "regularMarketPreviousClose"),
    )
    observed_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        validation_alias=AliasChoices("observed_at", "regularMarketTime", "timestamp"),
    )
    name: str | None = Field(default=None, validation_alias=AliasChoices("name", "shortName"))

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        symbol = value.strip().upper()
        if not symbol:
            raise ValueError("symbol must not be empty")
        return symbol

    @field_validator("price")
    @classmethod
    def _check_price(cls, value: float) -> float:
        if not isfinite(value) or value < 0:
            raise ValueError(f"invalid price {value!r}")
        return value

    @field_validator("change", "change_percent", "previous_close", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        return None if _is_blank(value) else value

    @field_validator("volume", mode="before")
    @classmethod
    def _coerce_volume(cls, value: Any) -> int:
        if _is_blank(value):
            return 0
        return int(float(value))

    @field_validator("observed_at", mode="before")
    @classmethod
    def _coerce_observed_at(cls, value: Any) -> Any:
        if value is None:
            return datetime.now(UTC)
        if isinstance(value, (int, float)):
            seconds = value / 1000 if value > 1e11 else value
            return datetime.fromtimestamp(seconds, tz=UTC)
        return value

    @model_validator(mode="after")
    def _derive_change(self) -> Quote:
        if self.change is None:
            self.change = self.price - self.previous_close if self.previous_close else 0.0
        if self.change_percent is None:
            if self.previous_close:
                self.change_percent = (self.price - self.previous_close) / self.previous_close * 100
            else:
                self.change_percent = 0.0
        if self.observed_at.tzinfo is None:
            self.observed_at = self.observed_at.replace(tzinfo=UTC)
        return self


__all__ = ["Quote"]
