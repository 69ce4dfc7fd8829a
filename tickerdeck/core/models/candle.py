"""Candle and price snapshot value objects."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any


@dataclass(slots=True, frozen=True)
class Candle:
    """One OHLCV record for a time bucket; identity is ``(symbol, bucket_key)``."""

    symbol: str
    bucket_key: str
    open: float
    high: float
    low: float
    close: float
    volume: int = 0

    @property
    def identity(self) -> tuple[str, str]:
        return (self.symbol, self.bucket_key)

    @property
    def trade_date(self) -> date:
        """Calendar date encoded in the bucket key."""

        return date.fromisoformat(self.bucket_key[:10])

    def as_mapping(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "bucket_key": self.bucket_key,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass(slots=True, frozen=True)
class LatestPrice:
    """Most recent observed price for a symbol."""

    symbol: str
    price: float
    change: float
    change_percent: float
    volume: int
    observed_at: datetime

    def as_mapping(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "price": self.price,
            "change": self.change,
            "change_percent": self.change_percent,
            "volume": self.volume,
            "observed_at": self.observed_at.isoformat(),
        }


@dataclass(slots=True, frozen=True)
class ChartData:
    """Chart series returned to the serving layer."""

    symbol: str
    range_token: str
    data: list[Candle] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.data)

    def to_payload(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "range": self.range_token,
            "count": self.count,
            "data": [candle.as_mapping() for candle in self.data],
        }


__all__ = ["Candle", "ChartData", "LatestPrice"]
