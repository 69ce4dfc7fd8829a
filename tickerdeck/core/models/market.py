"""Market-related enums."""

from __future__ import annotations

from enum import Enum


class Granularity(str, Enum):
    """Time resolution of stored candles."""

    FINE = "fine"  # 5-minute intraday buckets
    COARSE = "coarse"  # daily buckets

    @property
    def table(self) -> str:
        return f"candles_{self.value}"


class RangeToken(str, Enum):
    """Display ranges a chart can request."""

    INTRADAY = "intraday"
    FIVE_DAY = "5-day"
    ONE_MONTH = "1-month"
    THREE_MONTH = "3-month"
    SIX_MONTH = "6-month"
    ONE_YEAR = "1-year"
    FIVE_YEAR = "5-year"

    @classmethod
    def parse(cls, value: str) -> RangeToken | None:
        """Return the token for ``value`` or ``None`` when it is not recognised."""

        normalized = value.strip().lower()
        for token in cls:
            if token.value == normalized:
                return token
        return _ALIASES.get(normalized)


_ALIASES: dict[str, RangeToken] = {
    "1d": RangeToken.INTRADAY,
    "5d": RangeToken.FIVE_DAY,
    "1m": RangeToken.ONE_MONTH,
    "3m": RangeToken.THREE_MONTH,
    "6m": RangeToken.SIX_MONTH,
    "1y": RangeToken.ONE_YEAR,
    "5y": RangeToken.FIVE_YEAR,
}


__all__ = ["Granularity", "RangeToken"]
