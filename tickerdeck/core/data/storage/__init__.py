"""Persistent storage for candles and latest prices."""

from tickerdeck.core.data.storage.duckdb_factory import DuckDBConnectionFactory, DuckDBFactoryConfig
from tickerdeck.core.data.storage.store import DatabaseStats, SymbolStats, TimeSeriesStore

__all__ = [
    "DatabaseStats",
    "DuckDBConnectionFactory",
    "DuckDBFactoryConfig",
    "SymbolStats",
    "TimeSeriesStore",
]
