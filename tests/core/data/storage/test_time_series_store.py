from __future__ import annotations

from datetime import UTC, datetime, timedelta

import duckdb
import pytest

from tickerdeck.core.data.buckets import fine_key
from tickerdeck.core.data.storage import DuckDBConnectionFactory, DuckDBFactoryConfig, TimeSeriesStore
from tickerdeck.core.exceptions import DataValidationError, StorageError
from tickerdeck.core.models import Candle, Granularity


def test_upsert_is_idempotent(store: TimeSeriesStore, make_candle) -> None:
    candles = [make_candle("2024-01-02", 185.6), make_candle("2024-01-03", 184.2)]

    assert store.upsert_candles(Granularity.COARSE, candles) == 2
    first = store.query_candles(Granularity.COARSE, "AAPL")
    store.upsert_candles(Granularity.COARSE, candles)
    second = store.query_candles(Granularity.COARSE, "AAPL")

    assert first == second
    assert [candle.bucket_key for candle in second] == ["2024-01-02", "2024-01-03"]


def test_upsert_overwrites_existing_identity(store: TimeSeriesStore, make_candle) -> None:
    store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02", 100.0)])
    store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02", 101.5, volume=42)])

    [candle] = store.query_candles(Granularity.COARSE, "AAPL")
    assert candle.close == 101.5
    assert candle.volume == 42


def test_duplicate_identity_in_batch_keeps_last(store: TimeSeriesStore, make_candle) -> None:
    written = store.upsert_candles(
        Granularity.COARSE,
        [make_candle("2024-01-02", 1.0), make_candle("2024-01-02", 2.0)],
    )

    assert written == 1
    [candle] = store.query_candles(Granularity.COARSE, "AAPL")
    assert candle.close == 2.0


def test_empty_upsert_writes_nothing(store: TimeSeriesStore) -> None:
    assert store.upsert_candles(Granularity.FINE, []) == 0


def test_query_bounds_are_inclusive_and_ordered(store: TimeSeriesStore, make_candle) -> None:
    keys = ["2024-01-02", "2024-01-03", "2024-01-04", "2024-01-05"]
    store.upsert_candles(Granularity.COARSE, [make_candle(key) for key in reversed(keys)])
    store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-03", symbol="MSFT")])

    window = store.query_candles(Granularity.COARSE, "AAPL", "2024-01-03", "2024-01-04")
    latest = store.query_candles(Granularity.COARSE, "AAPL", descending=True, limit=2)

    assert [c.bucket_key for c in window] == ["2024-01-03", "2024-01-04"]
    assert [c.bucket_key for c in latest] == ["2024-01-05", "2024-01-04"]
    assert store.latest_bucket_key(Granularity.COARSE, "AAPL") == "2024-01-05"
    assert store.latest_bucket_key(Granularity.COARSE, "TSLA") is None


def test_granularities_are_stored_separately(store: TimeSeriesStore, make_candle) -> None:
    store.upsert_candles(Granularity.FINE, [make_candle("2024-01-02T14:30:00Z")])

    assert store.query_candles(Granularity.COARSE, "AAPL") == []
    assert len(store.query_candles(Granularity.FINE, "AAPL")) == 1


def test_failed_batch_is_rolled_back(store: TimeSeriesStore, make_candle) -> None:
    broken = Candle(symbol="AAPL", bucket_key=None, open=1.0, high=1.0, low=1.0, close=1.0)  # type: ignore[arg-type]

    with pytest.raises(StorageError) as exc_info:
        store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02"), broken])

    assert exc_info.value.details["operation"] == "upsert_candles"
    assert store.query_candles(Granularity.COARSE, "AAPL") == []


def test_purge_removes_only_expired_fine_candles(store: TimeSeriesStore, make_candle, clock) -> None:
    old = fine_key(clock.now - timedelta(days=40))
    recent = fine_key(clock.now - timedelta(days=10))
    store.upsert_candles(Granularity.FINE, [make_candle(old), make_candle(recent)])
    store.upsert_candles(Granularity.COARSE, [make_candle("2023-01-03")])

    deleted = store.purge_fine_grained_older_than(30)

    assert deleted == 1
    assert [c.bucket_key for c in store.query_candles(Granularity.FINE, "AAPL")] == [recent]
    assert len(store.query_candles(Granularity.COARSE, "AAPL")) == 1


def test_purge_cutoff_is_exclusive(store: TimeSeriesStore, make_candle, clock) -> None:
    boundary = fine_key(clock.now - timedelta(days=30))
    store.upsert_candles(Granularity.FINE, [make_candle(boundary)])

    assert store.purge_fine_grained_older_than(30) == 0


def test_purge_rejects_non_positive_retention(store: TimeSeriesStore) -> None:
    with pytest.raises(DataValidationError):
        store.purge_fine_grained_older_than(0)


def test_latest_price_is_overwritten(store: TimeSeriesStore) -> None:
    observed = datetime(2024, 3, 13, 14, 55, tzinfo=UTC)
    store.set_latest_price("AAPL", 170.0, 1.0, 0.59, 1_000, observed)
    store.set_latest_price("AAPL", 171.5, 2.5, 1.48, 2_000, observed + timedelta(minutes=5))
    store.set_latest_price("MSFT", 400.0, -1.0, -0.25, 500, observed)

    latest = store.get_latest_price("AAPL")
    assert latest is not None
    assert latest.price == 171.5
    assert latest.observed_at == observed + timedelta(minutes=5)
    assert [p.symbol for p in store.get_all_latest_prices()] == ["AAPL", "MSFT"]
    assert store.get_latest_price("TSLA") is None


def test_latest_price_defaults_observed_at_to_clock(store: TimeSeriesStore, clock) -> None:
    store.set_latest_price("AAPL", 170.0, 0.0, 0.0, 0)

    latest = store.get_latest_price("AAPL")
    assert latest is not None
    assert latest.observed_at == clock.now


def test_symbol_and_database_stats(store: TimeSeriesStore, make_candle) -> None:
    store.upsert_candles(
        Granularity.COARSE,
        [
            make_candle("2024-03-11", 10.0, high=12.0, low=9.0, volume=100),
            make_candle("2024-03-12", 20.0, high=21.0, low=18.0, volume=300),
            make_candle("2022-01-03", 1.0),
        ],
    )
    store.set_latest_price("MSFT", 400.0, 0.0, 0.0, 0)

    stats = store.symbol_stats("AAPL")
    assert stats is not None
    assert stats.total_days == 2
    assert stats.first_date == "2024-03-11"
    assert stats.avg_close == pytest.approx(15.0)
    assert (stats.year_low, stats.year_high) == (9.0, 21.0)
    assert stats.avg_volume == pytest.approx(200.0)
    assert store.symbol_stats("TSLA") is None

    overview = store.database_stats()
    assert overview.symbols == 2
    assert overview.coarse_rows == 3
    assert overview.fine_rows == 0
    assert overview.latest_price_rows == 1
    assert (overview.oldest_coarse, overview.newest_coarse) == ("2022-01-03", "2024-03-12")


def test_closed_store_raises_storage_error(store: TimeSeriesStore) -> None:
    store.close()

    with pytest.raises(StorageError):
        store.query_candles(Granularity.COARSE, "AAPL")


def test_store_persists_to_file(tmp_path, make_candle) -> None:
    database = tmp_path / "nested" / "ticks.duckdb"
    factory = DuckDBConnectionFactory(DuckDBFactoryConfig(database=database))

    with TimeSeriesStore(factory) as store:
        store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02")])
        store.compact()

    with TimeSeriesStore(factory) as reopened:
        assert len(reopened.query_candles(Granularity.COARSE, "AAPL")) == 1


def test_backup_exports_restorable_copy(store: TimeSeriesStore, make_candle, tmp_path) -> None:
    store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02"), make_candle("2024-01-03")])
    store.set_latest_price("AAPL", 101.0, 1.0, 1.0, 500)

    target = store.backup(tmp_path / "exports" / "nightly")

    assert (target / "schema.sql").exists()
    restored = duckdb.connect(":memory:")
    try:
        restored.execute(f"IMPORT DATABASE '{target}'")
        assert restored.execute("SELECT COUNT(*) FROM candles_coarse").fetchone()[0] == 2
        assert restored.execute("SELECT price FROM latest_prices").fetchone()[0] == 101.0
    finally:
        restored.close()


def test_backup_defaults_beside_database_file(tmp_path, make_candle, clock) -> None:
    factory = DuckDBConnectionFactory(DuckDBFactoryConfig(database=tmp_path / "ticks.duckdb"))

    with TimeSeriesStore(factory, clock=clock) as store:
        store.upsert_candles(Granularity.COARSE, [make_candle("2024-01-02")])
        target = store.backup()

    assert target == tmp_path / "backup_20240313T150000Z"
    assert (target / "load.sql").exists()


def test_backup_refuses_unusable_targets(store: TimeSeriesStore, tmp_path) -> None:
    occupied = tmp_path / "occupied"
    occupied.mkdir()
    (occupied / "keep.txt").write_text("x")

    with pytest.raises(DataValidationError):
        store.backup()
    with pytest.raises(DataValidationError):
        store.backup(occupied)


def test_backup_on_closed_store_raises_storage_error(store: TimeSeriesStore, tmp_path) -> None:
    store.close()

    with pytest.raises(StorageError):
        store.backup(tmp_path / "late")
