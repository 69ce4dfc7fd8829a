"""Reconcile provider data into the time-series store."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from time import perf_counter
from uuid import uuid4
from zoneinfo import ZoneInfo

import pandas as pd

from tickerdeck.core.config import TickerdeckConfig
from tickerdeck.core.data.buckets import as_utc, fine_key
from tickerdeck.core.data.ingestion.normalize import normalize_rows
from tickerdeck.core.data.ingestion.reports import IngestionReport, MaintenanceReport, SymbolFailure
from tickerdeck.core.data.ingestion.strategies import (
    EMPTY_CODE,
    QuoteStrategy,
    select_quote_strategy,
    timeout_failure,
)
from tickerdeck.core.data.providers import COARSE_INTERVAL, HistoryRow, MarketDataProvider
from tickerdeck.core.data.storage import TimeSeriesStore
from tickerdeck.core.exceptions import ProviderError, StorageError
from tickerdeck.core.logging import get_logger, log_context
from tickerdeck.core.models import Candle, Granularity, normalize_symbols
from tickerdeck.core.services.market_hours import MarketHours

logger = get_logger(__name__)

REJECTED_CODE = "ALL_ROWS_REJECTED"


def _elapsed_ms(started: float) -> float:
    return (perf_counter() - started) * 1000


def tick_candle(symbol: str, price: float, volume: int, now: datetime) -> Candle:
    """Synthetic fine candle for a live quote at the current five-minute bucket."""

    return Candle(
        symbol=symbol,
        bucket_key=fine_key(now, floor=True),
        open=price,
        high=price,
        low=price,
        close=price,
        volume=volume,
    )


class IngestionReconciler:
    """Fetches quotes and history from a provider and writes them to the store.

    Provider failures are isolated per symbol and reported; storage failures
    abort the running operation and propagate to the caller.
    """

    def __init__(
        self,
        store: TimeSeriesStore,
        provider: MarketDataProvider,
        config: TickerdeckConfig | None = None,
        *,
        strategy: QuoteStrategy | None = None,
        market_hours: MarketHours | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._config = config or TickerdeckConfig()
        provider_config = self._config.provider
        self._strategy = strategy or select_quote_strategy(
            provider,
            timeout=provider_config.timeout,
            max_concurrency=provider_config.max_concurrency,
        )
        self._hours = market_hours or MarketHours(timezone=self._config.ingestion.market_timezone)
        self._clock = clock or store.now

    @property
    def strategy(self) -> QuoteStrategy:
        return self._strategy

    @property
    def market_hours(self) -> MarketHours:
        return self._hours

    def _now(self) -> datetime:
        return as_utc(self._clock())

    def local_today(self) -> date:
        """Current date in the market timezone."""

        return self._now().astimezone(ZoneInfo(self._config.ingestion.market_timezone)).date()

    def _symbols(self, symbols: Iterable[str] | None) -> list[str]:
        return normalize_symbols(self._config.ingestion.symbols if symbols is None else symbols)

    # -- quotes ----------------------------------------------------------------

    async def refresh_quotes(self, symbols: Iterable[str] | None = None) -> IngestionReport:
        """Store the latest price of each symbol; add tick candles while the market is open."""

        requested = self._symbols(symbols)
        report = IngestionReport(batch_id=uuid4().hex, operation="refresh_quotes", requested=requested)
        started = perf_counter()

        with log_context(trace_id=report.batch_id, operation=report.operation):
            outcome = await self._strategy.fetch(requested)
            now = self._now()
            market_open = self._hours.is_open(now)

            ticks: list[Candle] = []
            for symbol in requested:
                quote = outcome.quotes.get(symbol)
                if quote is None:
                    continue
                self._store.set_latest_price(
                    symbol,
                    quote.price,
                    quote.change or 0.0,
                    quote.change_percent or 0.0,
                    quote.volume,
                    quote.observed_at,
                )
                if market_open:
                    ticks.append(tick_candle(symbol, quote.price, quote.volume, now))
                report.succeeded.append(symbol)

            report.failures.extend(outcome.failures)
            if ticks:
                report.ticks_written = self._store.upsert_candles(Granularity.FINE, ticks)
            report.duration_ms = _elapsed_ms(started)
            logger.info(
                f"quotes refreshed: {len(report.succeeded)} ok, {len(report.failures)} failed, "
                f"market {'open' if market_open else 'closed'}"
            )
        return report

    # -- history ---------------------------------------------------------------

    async def _fetch_history(
        self,
        symbol: str,
        start: date | datetime,
        end: date | datetime,
        interval: str,
        semaphore: asyncio.Semaphore,
    ) -> list[HistoryRow] | SymbolFailure:
        timeout = self._config.provider.timeout
        async with semaphore:
            try:
                rows = await asyncio.wait_for(self._provider.fetch_history(symbol, start, end, interval), timeout)
            except TimeoutError:
                return timeout_failure(self._provider, symbol, timeout, "history")
            except ProviderError as exc:
                return SymbolFailure(symbol, exc.error_code, exc.message)
        if not rows:
            return SymbolFailure(symbol, EMPTY_CODE, "provider returned no history")
        return rows

    async def backfill_history(
        self,
        symbols: Iterable[str] | None,
        granularity: Granularity,
        start: date | datetime,
        end: date | datetime,
        *,
        interval: str | None = None,
        operation: str = "backfill_history",
    ) -> IngestionReport:
        """Fetch, normalize and upsert candles for every symbol in one write batch."""

        granularity = Granularity(granularity)
        if interval is None:
            interval = COARSE_INTERVAL if granularity is Granularity.COARSE else self._config.ingestion.fine_interval
        requested = self._symbols(symbols)
        report = IngestionReport(batch_id=uuid4().hex, operation=operation, requested=requested)
        started = perf_counter()

        with log_context(trace_id=report.batch_id, operation=operation, granularity=granularity.value):
            semaphore = asyncio.Semaphore(self._config.provider.max_concurrency)
            results = await asyncio.gather(
                *(self._fetch_history(symbol, start, end, interval, semaphore) for symbol in requested)
            )

            candles: list[Candle] = []
            for symbol, result in zip(requested, results, strict=True):
                if isinstance(result, SymbolFailure):
                    logger.warning(f"history for {symbol} failed: {result.code} {result.message}")
                    report.failures.append(result)
                    continue
                batch = normalize_rows(
                    symbol,
                    result,
                    granularity,
                    market_tz=self._config.ingestion.market_timezone,
                )
                report.rejected_rows += batch.rejected
                codes = batch.fatal_codes()
                if codes:
                    logger.warning(f"rejected {batch.rejected} rows for {symbol}: {dict(codes)}")
                    for code, count in codes.items():
                        report.rejection_codes[code] = report.rejection_codes.get(code, 0) + count
                if not batch.candles:
                    report.failures.append(SymbolFailure(symbol, REJECTED_CODE, f"all {len(result)} rows rejected"))
                    continue
                candles.extend(batch.candles)
                report.succeeded.append(symbol)

            report.written_rows = self._store.upsert_candles(granularity, candles)
            report.duration_ms = _elapsed_ms(started)
            logger.info(
                f"{granularity.value} backfill wrote {report.written_rows} rows for "
                f"{len(report.succeeded)}/{len(requested)} symbols"
            )
        return report

    async def refresh_daily(self, symbols: Iterable[str] | None = None) -> IngestionReport:
        """Re-fetch the trailing daily candles, typically after the close."""

        today = self.local_today()
        start = today - timedelta(days=self._config.ingestion.daily_lookback_days)
        return await self.backfill_history(symbols, Granularity.COARSE, start, today, operation="refresh_daily")

    async def initial_load(self, symbols: Iterable[str] | None = None) -> IngestionReport:
        """Seed an empty store with quotes, daily history and recent intraday candles."""

        ingestion = self._config.ingestion
        today = self.local_today()
        now = self._now()

        report = await self.refresh_quotes(symbols)
        report.operation = "initial_load"
        coarse_start = (pd.Timestamp(today) - pd.DateOffset(years=ingestion.initial_history_years)).date()
        report.merge(await self.backfill_history(symbols, Granularity.COARSE, coarse_start, today))
        report.merge(
            await self.backfill_history(
                symbols,
                Granularity.FINE,
                now - timedelta(days=ingestion.initial_intraday_days),
                now,
            )
        )
        return report

    # -- maintenance -----------------------------------------------------------

    def run_maintenance(self, retention_days: int | None = None) -> MaintenanceReport:
        """Purge fine candles past retention and compact when anything was removed.

        Storage failures are logged and recorded on the report instead of raised.
        """

        if retention_days is None:
            retention_days = self._config.ingestion.fine_retention_days
        report = MaintenanceReport(batch_id=uuid4().hex, retention_days=retention_days)
        started = perf_counter()

        with log_context(trace_id=report.batch_id, operation="maintenance"):
            try:
                report.purged_rows = self._store.purge_fine_grained_older_than(retention_days)
                if report.purged_rows:
                    self._store.compact()
                    report.compacted = True
            except StorageError as exc:
                logger.error(f"maintenance failed: {exc.message}")
                report.error = exc.message
            report.duration_ms = _elapsed_ms(started)
        return report


__all__ = ["IngestionReconciler", "REJECTED_CODE", "tick_candle"]