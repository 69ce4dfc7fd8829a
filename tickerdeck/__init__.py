"""tickerdeck - stock dashboard data core

Time-series storage of daily and intraday candles, chart range resolution
and provider ingestion for a stock price dashboard.
"""

from tickerdeck.core.config import TickerdeckConfig
from tickerdeck.core.data.ingestion import IngestionReconciler
from tickerdeck.core.data.storage import TimeSeriesStore
from tickerdeck.core.models import Candle, ChartData, Granularity, LatestPrice, RangeToken
from tickerdeck.core.services import RangeResolver

__version__ = "0.1.0"

__all__ = [
    "Candle",
    "ChartData",
    "Granularity",
    "IngestionReconciler",
    "LatestPrice",
    "RangeResolver",
    "RangeToken",
    "TickerdeckConfig",
    "TimeSeriesStore",
    "__version__",
]
