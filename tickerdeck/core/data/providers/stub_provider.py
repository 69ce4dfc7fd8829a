"""Deterministic in-memory provider for tests and offline runs."""

from __future__ import annotations

import asyncio
import zlib
from collections.abc import Collection, Iterator, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from tickerdeck.core.data.providers.base import COARSE_INTERVAL, HistoryRow, MarketDataProvider
from tickerdeck.core.exceptions import ProviderError
from tickerdeck.core.models import Quote

# 09:30-16:00 New York during daylight saving time
_SESSION_START_UTC = time(13, 30)
_SESSION_BARS = 78


@dataclass(frozen=True)
class StubProviderRow:
    """Typed representation of a stub history row."""

    timestamp: object
    open: float | None = None
    high: float | None = None
    low: float | None = None
    close: float | None = None
    volume: float | None = None

    def as_mapping(self) -> Mapping[str, object]:
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


def base_price(symbol: str) -> float:
    """Stable pseudo price in ``[50, 550)`` derived from the symbol."""

    return 50.0 + zlib.crc32(symbol.encode()) % 50_000 / 100


def _weekdays(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        if current.weekday() < 5:
            yield current
        current += timedelta(days=1)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _synthetic_bar(symbol: str, index: int, timestamp: object) -> StubProviderRow:
    base = base_price(symbol)
    drift = ((index % 7) - 3) / 300
    open_ = round(base * (1 + drift), 2)
    close = round(base * (1 + drift + 0.002), 2)
    return StubProviderRow(
        timestamp=timestamp,
        open=open_,
        high=round(max(open_, close) * 1.003, 2),
        low=round(min(open_, close) * 0.997, 2),
        close=close,
        volume=1_000 + (index * 37) % 500,
    )


class StubProvider(MarketDataProvider):
    """Provider whose answers are fixed by construction.

    Quotes and history default to synthetic values derived from the symbol;
    ``quotes`` and ``history`` override them per symbol. Symbols listed in
    ``failing_symbols`` raise :class:`ProviderError`; those in
    ``slow_symbols`` sleep ``delay`` seconds before answering.
    """

    def __init__(
        self,
        quotes: Mapping[str, Quote | Mapping[str, Any] | float] | None = None,
        history: Mapping[str, Sequence[Mapping[str, Any] | StubProviderRow]] | None = None,
        *,
        failing_symbols: Collection[str] = (),
        missing_symbols: Collection[str] = (),
        slow_symbols: Collection[str] = (),
        delay: float = 0.0,
        supports_batch_quotes: bool = False,
        batch_error: bool = False,
        name: str = "stub",
    ):
        super().__init__(name)
        self._quotes = dict(quotes or {})
        self._history = {symbol: list(rows) for symbol, rows in (history or {}).items()}
        self.failing_symbols = set(failing_symbols)
        self.missing_symbols = set(missing_symbols)
        self.slow_symbols = set(slow_symbols)
        self.delay = delay
        self.supports_batch_quotes = supports_batch_quotes
        self.batch_error = batch_error
        self.quote_calls: list[str] = []
        self.batch_calls: list[list[str]] = []
        self.history_calls: list[tuple[str, date | datetime, date | datetime, str]] = []
        self.closed = False

    async def _maybe_stall(self, symbol: str) -> None:
        if symbol in self.slow_symbols and self.delay:
            await asyncio.sleep(self.delay)

    def _check(self, symbol: str) -> None:
        if symbol in self.failing_symbols:
            raise ProviderError(f"stub failure for {symbol}", self.name, details={"symbol": symbol})

    def _quote_for(self, symbol: str) -> Quote | None:
        if symbol in self.missing_symbols:
            return None
        configured = self._quotes.get(symbol)
        if isinstance(configured, Quote):
            return configured
        if isinstance(configured, Mapping):
            return self.build_quote({"symbol": symbol, **configured})
        price = float(configured) if configured is not None else base_price(symbol)
        return Quote(
            symbol=symbol,
            price=price,
            previous_close=round(price * 0.99, 2),
            volume=10_000,
            observed_at=datetime(2024, 1, 2, 15, 0, tzinfo=UTC),
        )

    async def fetch_quote(self, symbol: str) -> Quote | None:
        self.quote_calls.append(symbol)
        await self._maybe_stall(symbol)
        self._check(symbol)
        return self._quote_for(symbol)

    async def fetch_quotes(self, symbols: Sequence[str]) -> dict[str, Quote]:
        if not self.supports_batch_quotes:
            return await super().fetch_quotes(symbols)
        self.batch_calls.append(list(symbols))
        if self.batch_error:
            raise ProviderError("stub batch failure", self.name)
        for symbol in symbols:
            await self._maybe_stall(symbol)

        quotes: dict[str, Quote] = {}
        for symbol in symbols:
            if symbol in self.failing_symbols:
                continue
            try:
                quote = self._quote_for(symbol)
            except ProviderError:
                continue
            if quote is not None:
                quotes[symbol] = quote
        return quotes

    def _synthetic_history(self, symbol: str, start: date, end: date, interval: str) -> list[HistoryRow]:
        rows: list[HistoryRow] = []
        for day_index, day in enumerate(_weekdays(start, end)):
            if interval == COARSE_INTERVAL:
                rows.append(_synthetic_bar(symbol, day_index, day.isoformat()).as_mapping())
                continue
            session_start = datetime.combine(day, _SESSION_START_UTC, tzinfo=UTC)
            for bar in range(_SESSION_BARS):
                stamp = session_start + timedelta(minutes=5 * bar)
                rows.append(_synthetic_bar(symbol, day_index * _SESSION_BARS + bar, stamp).as_mapping())
        return rows

    async def fetch_history(
        self,
        symbol: str,
        start: date | datetime,
        end: date | datetime,
        interval: str = COARSE_INTERVAL,
    ) -> list[HistoryRow]:
        self.history_calls.append((symbol, start, end, interval))
        await self._maybe_stall(symbol)
        self._check(symbol)
        if symbol in self.missing_symbols:
            return []
        if symbol in self._history:
            return [row.as_mapping() if isinstance(row, StubProviderRow) else dict(row) for row in self._history[symbol]]
        return self._synthetic_history(symbol, _as_date(start), _as_date(end), interval)

    async def close(self) -> None:
        self.closed = True


__all__ = ["StubProvider", "StubProviderRow", "base_price"]
