from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from tickerdeck.core.config import IngestionConfig, ProviderConfig, TickerdeckConfig
from tickerdeck.core.data.ingestion import IngestionReconciler
from tickerdeck.core.data.ingestion.reconciler import REJECTED_CODE
from tickerdeck.core.data.ingestion.strategies import EMPTY_CODE
from tickerdeck.core.data.providers import StubProvider, base_price
from tickerdeck.core.data.storage import TimeSeriesStore
from tickerdeck.core.exceptions import DataValidationError, StorageError
from tickerdeck.core.models import Granularity


def _config(*symbols: str, **ingestion) -> TickerdeckConfig:
    return TickerdeckConfig(ingestion=IngestionConfig(symbols=list(symbols) or ["AAPL"], **ingestion))


@pytest.mark.asyncio
async def test_refresh_quotes_isolates_failing_symbol(store: TimeSeriesStore) -> None:
    provider = StubProvider(failing_symbols={"BAD"})
    reconciler = IngestionReconciler(store, provider, _config("AAPL", "BAD", "MSFT"))

    report = await reconciler.refresh_quotes()

    assert report.succeeded == ["AAPL", "MSFT"]
    assert report.failed_symbols == ["BAD"]
    assert not report.ok
    assert [price.symbol for price in store.get_all_latest_prices()] == ["AAPL", "MSFT"]
    latest = store.get_latest_price("AAPL")
    assert latest is not None
    assert latest.price == pytest.approx(base_price("AAPL"))


@pytest.mark.asyncio
async def test_ticks_are_written_only_while_market_is_open(store: TimeSeriesStore, clock) -> None:
    reconciler = IngestionReconciler(store, StubProvider(), _config("AAPL"))

    clock.now = datetime(2024, 3, 13, 15, 3, 20, tzinfo=UTC)
    open_report = await reconciler.refresh_quotes()
    clock.now = datetime(2024, 3, 16, 15, 0, tzinfo=UTC)  # Saturday
    closed_report = await reconciler.refresh_quotes()

    assert open_report.ticks_written == 1
    assert closed_report.ticks_written == 0
    ticks = store.query_candles(Granularity.FINE, "AAPL")
    assert [tick.bucket_key for tick in ticks] == ["2024-03-13T15:00:00Z"]
    assert ticks[0].open == ticks[0].close == ticks[0].high == ticks[0].low


@pytest.mark.asyncio
async def test_requested_symbols_are_normalized(store: TimeSeriesStore) -> None:
    reconciler = IngestionReconciler(store, StubProvider(), _config("MSFT"))

    report = await reconciler.refresh_quotes(["aapl", " AAPL "])

    assert report.requested == ["AAPL"]


@pytest.mark.asyncio
async def test_storage_failure_propagates(store: TimeSeriesStore) -> None:
    reconciler = IngestionReconciler(store, StubProvider(), _config("AAPL"))
    store.close()

    with pytest.raises(StorageError):
        await reconciler.refresh_quotes()


@pytest.mark.asyncio
async def test_backfill_writes_one_batch_and_reports_failures(store: TimeSeriesStore) -> None:
    provider = StubProvider(failing_symbols={"BAD"}, missing_symbols={"GONE"})
    reconciler = IngestionReconciler(store, provider)

    report = await reconciler.backfill_history(
        ["AAPL", "BAD", "GONE", "MSFT"], Granularity.COARSE, date(2024, 3, 11), date(2024, 3, 17)
    )

    assert report.succeeded == ["AAPL", "MSFT"]
    assert {(f.symbol, f.code) for f in report.failures} == {("BAD", "PROVIDER_ERROR"), ("GONE", EMPTY_CODE)}
    assert report.written_rows == 10
    keys = [candle.bucket_key for candle in store.query_candles(Granularity.COARSE, "MSFT")]
    assert keys == ["2024-03-11", "2024-03-12", "2024-03-13", "2024-03-14", "2024-03-15"]


@pytest.mark.asyncio
async def test_backfill_counts_rejected_rows(store: TimeSeriesStore) -> None:
    provider = StubProvider(
        history={
            "AAPL": [
                {"date": "2024-03-11", "open": 1, "high": 2, "low": 1, "close": 2, "volume": 5},
                {"date": "2024-03-12", "close": -1},
            ],
            "JUNK": [{"date": None, "close": 1}, {"date": "2024-03-12"}],
        }
    )
    reconciler = IngestionReconciler(store, provider)

    report = await reconciler.backfill_history(["AAPL", "JUNK"], Granularity.COARSE, date(2024, 3, 11), date(2024, 3, 12))

    assert report.succeeded == ["AAPL"]
    assert [(f.symbol, f.code) for f in report.failures] == [("JUNK", REJECTED_CODE)]
    assert report.rejected_rows == 3
    assert report.written_rows == 1
    assert report.rejection_codes == {"NEGATIVE_PRICE": 1, "MISSING_TIMESTAMP": 1, "MISSING_CLOSE": 1}
    assert report.as_mapping()["rejection_codes"] == report.rejection_codes


@pytest.mark.asyncio
async def test_refresh_daily_requests_trailing_window(store: TimeSeriesStore) -> None:
    provider = StubProvider()
    reconciler = IngestionReconciler(store, provider, _config("AAPL", daily_lookback_days=5))

    report = await reconciler.refresh_daily()

    assert report.operation == "refresh_daily"
    assert provider.history_calls == [("AAPL", date(2024, 3, 8), date(2024, 3, 13), "1d")]
    assert report.written_rows == 4


@pytest.mark.asyncio
async def test_initial_load_seeds_every_layer(store: TimeSeriesStore) -> None:
    provider = StubProvider()
    reconciler = IngestionReconciler(store, provider, _config("AAPL", initial_history_years=1, initial_intraday_days=2))

    report = await reconciler.initial_load()

    assert report.operation == "initial_load"
    assert report.succeeded == ["AAPL"]
    assert report.ticks_written == 1
    assert store.get_latest_price("AAPL") is not None
    intervals = [call[3] for call in provider.history_calls]
    assert intervals == ["1d", "5m"]
    coarse = store.query_candles(Granularity.COARSE, "AAPL")
    assert coarse[0].bucket_key == "2023-03-13"
    assert coarse[-1].bucket_key == "2024-03-13"
    # three sessions of 78 bars; the live tick lands on an existing bucket
    assert len(store.query_candles(Granularity.FINE, "AAPL")) == 234


def test_maintenance_purges_and_compacts(store: TimeSeriesStore, make_candle) -> None:
    store.upsert_candles(
        Granularity.FINE,
        [make_candle("2024-02-01T15:00:00Z"), make_candle("2024-03-12T15:00:00Z")],
    )
    reconciler = IngestionReconciler(store, StubProvider())

    report = reconciler.run_maintenance(retention_days=30)
    again = reconciler.run_maintenance(retention_days=30)

    assert report.ok
    assert (report.purged_rows, report.compacted) == (1, True)
    assert (again.purged_rows, again.compacted) == (0, False)
    assert len(store.query_candles(Granularity.FINE, "AAPL")) == 1


def test_maintenance_reports_storage_failure(store: TimeSeriesStore) -> None:
    reconciler = IngestionReconciler(store, StubProvider())
    store.close()

    report = reconciler.run_maintenance()

    assert not report.ok
    assert report.error == "store is closed"
    assert report.retention_days == 30


@pytest.mark.asyncio
async def test_slow_history_is_reported_as_timeout(store: TimeSeriesStore) -> None:
    config = TickerdeckConfig(provider=ProviderConfig(timeout=0.05), ingestion=IngestionConfig(symbols=["AAPL", "SLOW"]))
    provider = StubProvider(slow_symbols={"SLOW"}, delay=1.0)

    report = await IngestionReconciler(store, provider, config).backfill_history(
        None, Granularity.COARSE, date(2024, 3, 11), date(2024, 3, 12)
    )

    assert report.succeeded == ["AAPL"]
    assert [(f.symbol, f.code) for f in report.failures] == [("SLOW", "PROVIDER_TIMEOUT")]


@pytest.mark.asyncio
@pytest.mark.parametrize("batch", [False, True], ids=["per_symbol", "batch"])
async def test_malformed_quote_fails_only_its_symbol(store: TimeSeriesStore, batch: bool) -> None:
    provider = StubProvider(quotes={"BAD": {"price": "n/a", "volume": "lots"}}, supports_batch_quotes=batch)
    reconciler = IngestionReconciler(store, provider, _config("AAPL", "BAD", "MSFT"))

    report = await reconciler.refresh_quotes()

    assert report.succeeded == ["AAPL", "MSFT"]
    (failure,) = report.failures
    assert (failure.symbol, failure.code) == ("BAD", "PROVIDER_ERROR")
    assert "malformed quote for BAD" in failure.message
    assert [price.symbol for price in store.get_all_latest_prices()] == ["AAPL", "MSFT"]


def test_explicit_zero_retention_is_not_replaced_by_default(store: TimeSeriesStore) -> None:
    reconciler = IngestionReconciler(store, StubProvider(), _config("AAPL", fine_retention_days=3))

    with pytest.raises(DataValidationError):
        reconciler.run_maintenance(0)
    assert reconciler.run_maintenance().retention_days == 3
