"""Market-data provider adapters."""

from tickerdeck.core.data.providers.base import (
    COARSE_INTERVAL,
    FINE_INTERVAL,
    HistoryRow,
    MarketDataProvider,
)
from tickerdeck.core.data.providers.factory import PROVIDER_FACTORIES, create_provider
from tickerdeck.core.data.providers.stub_provider import StubProvider, StubProviderRow, base_price
from tickerdeck.core.data.providers.yfinance import YFinanceProvider

__all__ = [
    "COARSE_INTERVAL",
    "FINE_INTERVAL",
    "HistoryRow",
    "MarketDataProvider",
    "PROVIDER_FACTORIES",
    "create_provider",
    "StubProvider",
    "StubProviderRow",
    "YFinanceProvider",
    "base_price",
]
