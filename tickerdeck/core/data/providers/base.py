"""Market-data provider abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any

from pydantic import ValidationError

from tickerdeck.core.exceptions import ProviderError
from tickerdeck.core.models import Quote

HistoryRow = Mapping[str, Any]

COARSE_INTERVAL = "1d"
FINE_INTERVAL = "5m"


class MarketDataProvider(ABC):
    """Asynchronous source of live quotes and historical candles."""

    supports_batch_quotes: bool = False

    def __init__(self, name: str):
        """Initialise the provider.

        Args:
            name: provider name used in logs and error payloads
        """
        self.name = name

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> Quote | None:
        """Fetch the live quote for one symbol.

        Returns:
            the quote, or ``None`` when the provider has nothing for ``symbol``

        Raises:
            ProviderError: on network or payload failure
        """

    def build_quote(self, payload: Mapping[str, Any]) -> Quote:
        """Validate a raw quote payload; a malformed one raises :class:`ProviderError`."""

        try:
            return Quote.model_validate(payload)
        except ValidationError as exc:
            symbol = payload.get("symbol", "?")
            raise ProviderError(
                f"malformed quote for {symbol}: {exc.error_count()} invalid fields",
                self.name,
                details={"symbol": symbol, "errors": [error["loc"] for error in exc.errors()]},
            ) from exc

    async def fetch_quotes(self, symbols: Sequence[str]) -> dict[str, Quote]:
        """Fetch live quotes for several symbols in one round trip.

        The result is best effort: symbols the provider could not resolve are
        simply absent. Providers without batch support raise
        :class:`ProviderError`.
        """

        raise ProviderError(f"{self.name} does not support batch quotes", self.name)

    @abstractmethod
    async def fetch_history(
        self,
        symbol: str,
        start: date | datetime,
        end: date | datetime,
        interval: str = COARSE_INTERVAL,
    ) -> list[HistoryRow]:
        """Fetch untyped OHLCV rows for ``symbol`` between ``start`` and ``end`` inclusive."""

    async def close(self) -> None:
        """Release provider resources; nothing to do by default."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


__all__ = ["COARSE_INTERVAL", "FINE_INTERVAL", "HistoryRow", "MarketDataProvider"]
