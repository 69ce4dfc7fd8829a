"""DuckDB schema definitions for candle and latest-price storage."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from duckdb import DuckDBPyConnection

from tickerdeck.core.models.market import Granularity


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        return " ".join([self.name, self.data_type, *self.constraints])


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            column_defs.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table on the provided connection if it does not exist."""

        conn.execute(self.create_ddl())


def _candle_table(name: str) -> TableSchema:
    return TableSchema(
        name=name,
        columns=(
            ColumnDef("symbol", "VARCHAR", ("NOT NULL",)),
            ColumnDef("bucket_key", "VARCHAR", ("NOT NULL",)),
            ColumnDef("open", "DOUBLE", ("NOT NULL",)),
            ColumnDef("high", "DOUBLE", ("NOT NULL",)),
            ColumnDef("low", "DOUBLE", ("NOT NULL",)),
            ColumnDef("close", "DOUBLE", ("NOT NULL",)),
            ColumnDef("volume", "BIGINT", ("NOT NULL",)),
            ColumnDef("updated_at", "TIMESTAMP", ("NOT NULL",)),
        ),
        # the primary key doubles as the (symbol, bucket_key) index used for range scans
        primary_key=("symbol", "bucket_key"),
    )


FINE_CANDLES_TABLE = _candle_table(Granularity.FINE.table)

COARSE_CANDLES_TABLE = _candle_table(Granularity.COARSE.table)

LATEST_PRICES_TABLE = TableSchema(
    name="latest_prices",
    columns=(
        ColumnDef("symbol", "VARCHAR", ("NOT NULL",)),
        ColumnDef("price", "DOUBLE", ("NOT NULL",)),
        ColumnDef("change", "DOUBLE", ("NOT NULL",)),
        ColumnDef("change_percent", "DOUBLE", ("NOT NULL",)),
        ColumnDef("volume", "BIGINT", ("NOT NULL",)),
        ColumnDef("observed_at", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("updated_at", "TIMESTAMP", ("NOT NULL",)),
    ),
    primary_key=("symbol",),
)

CANDLE_TABLES: dict[Granularity, TableSchema] = {
    Granularity.FINE: FINE_CANDLES_TABLE,
    Granularity.COARSE: COARSE_CANDLES_TABLE,
}


def storage_tables() -> Sequence[TableSchema]:
    """Return every table the time-series store relies on."""

    return (FINE_CANDLES_TABLE, COARSE_CANDLES_TABLE, LATEST_PRICES_TABLE)


def ensure_storage_tables(conn: DuckDBPyConnection) -> None:
    """Create all storage tables on the provided DuckDB connection."""

    for table in storage_tables():
        table.ensure(conn)


def create_storage_ddl() -> Iterable[str]:
    """Yield CREATE TABLE statements for the storage schema."""

    for table in storage_tables():
        yield table.create_ddl()


__all__ = [
    "CANDLE_TABLES",
    "COARSE_CANDLES_TABLE",
    "ColumnDef",
    "FINE_CANDLES_TABLE",
    "LATEST_PRICES_TABLE",
    "TableSchema",
    "create_storage_ddl",
    "ensure_storage_tables",
    "storage_tables",
]
