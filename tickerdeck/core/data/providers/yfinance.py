"""Yahoo Finance provider backed by the ``yfinance`` package."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd
import yfinance as yf

from tickerdeck.core.data.providers.base import COARSE_INTERVAL, HistoryRow, MarketDataProvider
from tickerdeck.core.exceptions import ProviderError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.models import Quote

logger = get_logger(__name__)

SUPPORTED_INTERVALS = frozenset({"1m", "2m", "5m", "15m", "30m", "60m", "90m", "1h", "1d", "5d", "1wk", "1mo", "3mo"})


def _fast_info_payload(symbol: str, ticker: Any) -> dict[str, Any] | None:
    info = ticker.fast_info
    price = info.last_price
    if price is None or pd.isna(price):
        return None
    return {
        "symbol": symbol,
        "price": float(price),
        "previous_close": info.previous_close,
        "volume": info.last_volume,
    }


def _frame_to_rows(frame: pd.DataFrame | None) -> list[HistoryRow]:
    if frame is None or frame.empty:
        return []
    frame = frame.reset_index()
    # the index column is "Date" for daily bars and "Datetime" for intraday ones
    frame = frame.rename(columns={"Date": "timestamp", "Datetime": "timestamp"})
    return frame.to_dict("records")


def _exclusive_end(end: date | datetime) -> date | datetime:
    # yfinance treats ``end`` as exclusive
    if isinstance(end, datetime):
        return end + timedelta(seconds=1)
    return end + timedelta(days=1)


class YFinanceProvider(MarketDataProvider):
    """Yahoo Finance quotes and bars; blocking calls run in worker threads."""

    supports_batch_quotes = True

    def __init__(self, name: str = "yfinance"):
        super().__init__(name)

    def _quote_sync(self, symbol: str) -> Quote | None:
        try:
            payload = _fast_info_payload(symbol, yf.Ticker(symbol))
        except Exception as exc:
            raise ProviderError(f"quote request for {symbol} failed: {exc}", self.name) from exc
        return self.build_quote(payload) if payload else None

    def _quotes_sync(self, symbols: Sequence[str]) -> dict[str, Quote]:
        try:
            tickers = yf.Tickers(" ".join(symbols)).tickers
        except Exception as exc:
            raise ProviderError(f"batch quote request failed: {exc}", self.name) from exc

        quotes: dict[str, Quote] = {}
        for symbol in symbols:
            ticker = tickers.get(symbol)
            if ticker is None:
                continue
            try:
                payload = _fast_info_payload(symbol, ticker)
            except Exception as exc:
                logger.warning(f"batch quote for {symbol} unavailable: {exc}")
                continue
            if not payload:
                continue
            try:
                quotes[symbol] = self.build_quote(payload)
            except ProviderError as exc:
                # left out so the per-symbol path reports it
                logger.warning(f"batch quote for {symbol} skipped: {exc.message}")
        return quotes

    def _history_sync(
        self,
        symbol: str,
        start: date | datetime,
        end: date | datetime,
        interval: str,
    ) -> list[HistoryRow]:
        try:
            frame = yf.Ticker(symbol).history(
                start=start,
                end=_exclusive_end(end),
                interval=interval,
                auto_adjust=False,
                raise_errors=True,
            )
        except Exception as exc:
            raise ProviderError(f"history request for {symbol} failed: {exc}", self.name) from exc
        return _frame_to_rows(frame)

    async def fetch_quote(self, symbol: str) -> Quote | None:
        return await asyncio.to_thread(self._quote_sync, symbol)

    async def fetch_quotes(self, symbols: Sequence[str]) -> dict[str, Quote]:
        if not symbols:
            return {}
        return await asyncio.to_thread(self._quotes_sync, list(symbols))

    async def fetch_history(
        self,
        symbol: str,
        start: date | datetime,
        end: date | datetime,
        interval: str = COARSE_INTERVAL,
    ) -> list[HistoryRow]:
        if interval not in SUPPORTED_INTERVALS:
            raise ProviderError(f"unsupported interval {interval!r}", self.name)
        rows = await asyncio.to_thread(self._history_sync, symbol, start, end, interval)
        logger.debug(f"fetched {len(rows)} {interval} rows for {symbol}")
        return rows


__all__ = ["SUPPORTED_INTERVALS", "YFinanceProvider"]
