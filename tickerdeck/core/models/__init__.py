"""Domain models."""

from tickerdeck.core.models.candle import Candle, ChartData, LatestPrice
from tickerdeck.core.models.market import Granularity, RangeToken
from tickerdeck.core.models.quote import Quote
from tickerdeck.core.models.symbols import normalize_symbol, normalize_symbols

__all__ = [
    "Candle",
    "ChartData",
    "Granularity",
    "LatestPrice",
    "Quote",
    "RangeToken",
    "normalize_symbol",
    "normalize_symbols",
]
