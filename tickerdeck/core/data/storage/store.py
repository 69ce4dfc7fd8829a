"""DuckDB-backed time-series store for candles and latest prices."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import duckdb
from duckdb import DuckDBPyConnection

from tickerdeck.core.data.buckets import coarse_key, fine_cutoff_key
from tickerdeck.core.data.schema import CANDLE_TABLES, LATEST_PRICES_TABLE, ensure_storage_tables
from tickerdeck.core.data.storage.duckdb_factory import DuckDBConnectionFactory
from tickerdeck.core.exceptions import DataValidationError, StorageError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.models import Candle, Granularity, LatestPrice

logger = get_logger(__name__)

Clock = Callable[[], datetime]

_CANDLE_COLUMNS = "symbol, bucket_key, open, high, low, close, volume"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _aware_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _row_to_candle(row: Sequence[object]) -> Candle:
    symbol, bucket_key, open_, high, low, close, volume = row
    return Candle(
        symbol=str(symbol),
        bucket_key=str(bucket_key),
        open=float(open_),
        high=float(high),
        low=float(low),
        close=float(close),
        volume=int(volume),
    )


def _row_to_latest(row: Sequence[object]) -> LatestPrice:
    symbol, price, change, change_percent, volume, observed_at = row
    return LatestPrice(
        symbol=str(symbol),
        price=float(price),
        change=float(change),
        change_percent=float(change_percent),
        volume=int(volume),
        observed_at=_aware_utc(observed_at),
    )


@dataclass(slots=True, frozen=True)
class SymbolStats:
    """Trailing-year daily statistics for one symbol."""

    symbol: str
    total_days: int
    first_date: str
    last_date: str
    avg_close: float
    year_low: float
    year_high: float
    avg_volume: float


@dataclass(slots=True, frozen=True)
class DatabaseStats:
    """Row counts and coverage of the store."""

    database: str
    symbols: int
    fine_rows: int
    coarse_rows: int
    latest_price_rows: int
    oldest_coarse: str | None
    newest_coarse: str | None


class TimeSeriesStore:
    """Keyed storage of fine and coarse candles plus one latest price per symbol.

    Writes are serialized and run one transaction per batch; reads use their
    own cursors so they observe either the pre- or post-write state.
    """

    def __init__(
        self,
        factory: DuckDBConnectionFactory | None = None,
        *,
        connection: DuckDBPyConnection | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._factory = factory or DuckDBConnectionFactory()
        self._conn = connection if connection is not None else self._factory.create_connection()
        self._owns_connection = connection is None
        self._clock = clock or _utc_now
        self._write_lock = threading.Lock()
        self._closed = False
        try:
            ensure_storage_tables(self._conn)
        except duckdb.Error as exc:
            raise StorageError(f"unable to create storage tables: {exc}", "ensure_tables") from exc

    @property
    def connection(self) -> DuckDBPyConnection:
        return self._conn

    @property
    def database(self) -> str:
        return self._factory.database

    def now(self) -> datetime:
        return _aware_utc(self._clock())

    # -- connection helpers -------------------------------------------------

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[DuckDBPyConnection]:
        if self._closed:
            raise StorageError("store is closed", operation)
        cursor = self._conn.cursor()
        try:
            yield cursor
        except duckdb.Error as exc:
            raise StorageError(f"{operation} failed: {exc}", operation) from exc
        finally:
            cursor.close()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[DuckDBPyConnection]:
        with self._write_lock, self._cursor(operation) as cursor:
            cursor.begin()
            try:
                yield cursor
            except BaseException:
                self._rollback(cursor, operation)
                raise
            cursor.commit()

    def _rollback(self, cursor: DuckDBPyConnection, operation: str) -> None:
        try:
            cursor.rollback()
        except duckdb.Error as exc:
            logger.warning(f"rollback after failed {operation} also failed: {exc}")

    # -- candles ---------------------------------------------------------------

    def upsert_candles(self, granularity: Granularity, candles: Iterable[Candle]) -> int:
        """Insert or replace candles by ``(symbol, bucket_key)`` in one transaction.

        Returns the number of distinct identities written. Duplicate
        identities within the batch collapse to the last occurrence.
        """

        granularity = Granularity(granularity)
        table = CANDLE_TABLES[granularity]
        deduped: dict[tuple[str, str], Candle] = {}
        for candle in candles:
            deduped[candle.identity] = candle
        if not deduped:
            return 0

        updated_at = _naive_utc(self.now())
        rows = [
            (c.symbol, c.bucket_key, c.open, c.high, c.low, c.close, int(c.volume), updated_at)
            for c in deduped.values()
        ]
        sql = (
            f"INSERT OR REPLACE INTO {table.name} ({_CANDLE_COLUMNS}, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)"
        )
        with self._transaction("upsert_candles") as cursor:
            cursor.executemany(sql, rows)
        logger.debug(f"upserted {len(rows)} {granularity.value} candles")
        return len(rows)

    def query_candles(
        self,
        granularity: Granularity,
        symbol: str,
        from_bucket: str | None = None,
        to_bucket: str | None = None,
        *,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Candle]:
        """Return candles for ``symbol`` within inclusive bucket bounds."""

        table = CANDLE_TABLES[Granularity(granularity)]
        sql = f"SELECT {_CANDLE_COLUMNS} FROM {table.name} WHERE symbol = ?"
        params: list[object] = [symbol]
        if from_bucket is not None:
            sql += " AND bucket_key >= ?"
            params.append(from_bucket)
        if to_bucket is not None:
            sql += " AND bucket_key <= ?"
            params.append(to_bucket)
        sql += f" ORDER BY bucket_key {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self._cursor("query_candles") as cursor:
            rows = cursor.execute(sql, params).fetchall()
        return [_row_to_candle(row) for row in rows]

    def latest_bucket_key(self, granularity: Granularity, symbol: str) -> str | None:
        table = CANDLE_TABLES[Granularity(granularity)]
        with self._cursor("latest_bucket_key") as cursor:
            row = cursor.execute(f"SELECT MAX(bucket_key) FROM {table.name} WHERE symbol = ?", [symbol]).fetchone()
        return row[0] if row else None

    def purge_fine_grained_older_than(self, retention_days: int) -> int:
        """Delete fine candles whose bucket predates ``now - retention_days``."""

        if retention_days < 1:
            raise DataValidationError(
                "retention_days must be positive",
                validation_errors={"retention_days": retention_days},
            )
        table = CANDLE_TABLES[Granularity.FINE].name
        cutoff = fine_cutoff_key(self.now(), retention_days)
        with self._transaction("purge_fine_grained") as cursor:
            row = cursor.execute(f"SELECT COUNT(*) FROM {table} WHERE bucket_key < ?", [cutoff]).fetchone()
            deleted = int(row[0]) if row else 0
            if deleted:
                cursor.execute(f"DELETE FROM {table} WHERE bucket_key < ?", [cutoff])
        logger.info(f"purged {deleted} fine candles older than {cutoff}")
        return deleted

    def compact(self) -> None:
        """Flush the write-ahead log and reclaim space from deleted rows."""

        with self._write_lock, self._cursor("compact") as cursor:
            cursor.execute("CHECKPOINT")

    def backup(self, target: str | Path | None = None) -> Path:
        """Export every table into the directory ``target``.

        The export is restorable with DuckDB's ``IMPORT DATABASE``. Without a
        target it lands in ``backup_<UTC timestamp>`` beside the database file,
        so an in-memory store must be given one.
        """

        if self._closed:
            raise StorageError("store is closed", "backup")
        if target is None:
            if self.database == ":memory:":
                raise DataValidationError(
                    "an in-memory store needs an explicit backup target",
                    validation_errors={"target": None},
                )
            target = Path(self.database).parent / f"backup_{self.now():%Y%m%dT%H%M%SZ}"
        target = Path(target)
        if target.is_file() or (target.is_dir() and any(target.iterdir())):
            raise DataValidationError(
                f"backup target {target} already exists and is not an empty directory",
                validation_errors={"target": str(target)},
            )
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"unable to create backup directory {target}: {exc}", "backup") from exc

        escaped = str(target).replace("'", "''")
        with self._write_lock, self._cursor("backup") as cursor:
            cursor.execute("CHECKPOINT")
            cursor.execute(f"EXPORT DATABASE '{escaped}'")
        logger.info(f"database backed up to {target}")
        return target

    # -- latest prices ---------------------------------------------------------

    def set_latest_price(
        self,
        symbol: str,
        price: float,
        change: float,
        change_percent: float,
        volume: int,
        observed_at: datetime | None = None,
    ) -> None:
        """Upsert the single latest-price record for ``symbol``."""

        now = self.now()
        observed = _naive_utc(observed_at or now)
        sql = (
            f"INSERT OR REPLACE INTO {LATEST_PRICES_TABLE.name} "
            "(symbol, price, change, change_percent, volume, observed_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)"
        )
        with self._transaction("set_latest_price") as cursor:
            cursor.execute(
                sql,
                [symbol, float(price), float(change), float(change_percent), int(volume), observed, _naive_utc(now)],
            )

    def get_latest_price(self, symbol: str) -> LatestPrice | None:
        sql = (
            "SELECT symbol, price, change, change_percent, volume, observed_at "
            f"FROM {LATEST_PRICES_TABLE.name} WHERE symbol = ?"
        )
        with self._cursor("get_latest_price") as cursor:
            row = cursor.execute(sql, [symbol]).fetchone()
        return _row_to_latest(row) if row else None

    def get_all_latest_prices(self) -> list[LatestPrice]:
        sql = (
            "SELECT symbol, price, change, change_percent, volume, observed_at "
            f"FROM {LATEST_PRICES_TABLE.name} ORDER BY symbol"
        )
        with self._cursor("get_all_latest_prices") as cursor:
            rows = cursor.execute(sql).fetchall()
        return [_row_to_latest(row) for row in rows]

    # -- statistics ------------------------------------------------------------

    def symbol_stats(self, symbol: str) -> SymbolStats | None:
        """Daily statistics for ``symbol`` over the trailing year."""

        since = coarse_key(self.now() - timedelta(days=365))
        sql = f"""
            SELECT
                COUNT(*),
                MIN(bucket_key),
                MAX(bucket_key),
                AVG(close),
                MIN(low),
                MAX(high),
                AVG(volume)
            FROM {CANDLE_TABLES[Granularity.COARSE].name}
            WHERE symbol = ? AND bucket_key >= ?
        """
        with self._cursor("symbol_stats") as cursor:
            row = cursor.execute(sql, [symbol, since]).fetchone()
        if not row or not row[0]:
            return None
        total, first, last, avg_close, low, high, avg_volume = row
        return SymbolStats(
            symbol=symbol,
            total_days=int(total),
            first_date=str(first),
            last_date=str(last),
            avg_close=float(avg_close),
            year_low=float(low),
            year_high=float(high),
            avg_volume=float(avg_volume),
        )

    def database_stats(self) -> DatabaseStats:
        fine = CANDLE_TABLES[Granularity.FINE].name
        coarse = CANDLE_TABLES[Granularity.COARSE].name
        latest = LATEST_PRICES_TABLE.name
        sql = f"""
            SELECT
                (SELECT COUNT(*) FROM (
                    SELECT symbol FROM {fine}
                    UNION SELECT symbol FROM {coarse}
                    UNION SELECT symbol FROM {latest}
                )),
                (SELECT COUNT(*) FROM {fine}),
                (SELECT COUNT(*) FROM {coarse}),
                (SELECT COUNT(*) FROM {latest}),
                (SELECT MIN(bucket_key) FROM {coarse}),
                (SELECT MAX(bucket_key) FROM {coarse})
        """
        with self._cursor("database_stats") as cursor:
            row = cursor.execute(sql).fetchone()
        symbols, fine_rows, coarse_rows, latest_rows, oldest, newest = row
        return DatabaseStats(
            database=self.database,
            symbols=int(symbols),
            fine_rows=int(fine_rows),
            coarse_rows=int(coarse_rows),
            latest_price_rows=int(latest_rows),
            oldest_coarse=oldest,
            newest_coarse=newest,
        )

    # -- lifecycle -------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_connection:
            self._conn.close()

    def __enter__(self) -> TimeSeriesStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["Clock", "DatabaseStats", "SymbolStats", "TimeSeriesStore"]
