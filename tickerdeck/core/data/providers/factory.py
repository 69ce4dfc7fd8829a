"""Provider lookup by configured name."""

from __future__ import annotations

from collections.abc import Callable

from tickerdeck.core.data.providers.base import MarketDataProvider
from tickerdeck.core.data.providers.stub_provider import StubProvider
from tickerdeck.core.data.providers.yfinance import YFinanceProvider
from tickerdeck.core.exceptions import ConfigError

PROVIDER_FACTORIES: dict[str, Callable[[], MarketDataProvider]] = {
    "yfinance": YFinanceProvider,
    "yahoo": YFinanceProvider,
    "stub": StubProvider,
}


def create_provider(name: str) -> MarketDataProvider:
    """Instantiate the provider registered under ``name``."""

    factory = PROVIDER_FACTORIES.get(name.strip().lower())
    if factory is None:
        known = ", ".join(sorted(PROVIDER_FACTORIES))
        raise ConfigError(f"unknown provider {name!r}; expected one of: {known}", "provider.name")
    return factory()


__all__ = ["PROVIDER_FACTORIES", "create_provider"]
