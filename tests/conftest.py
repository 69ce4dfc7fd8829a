"""Pytest configuration for the tickerdeck test suite."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime

import duckdb
import pytest

from tickerdeck.core.data.storage import TimeSeriesStore
from tickerdeck.core.models import Candle


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register command-line options for controlling integration tests."""

    parser.addoption(
        "--tickerdeck-run-integration",
        action="store_true",
        default=False,
        help="Run tickerdeck integration tests that require network access.",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "integration: marks tickerdeck tests requiring network or external services",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless explicitly requested."""

    if config.getoption("--tickerdeck-run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="integration tests require --tickerdeck-run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


class FrozenClock:
    """Settable clock for deterministic tests."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture()
def clock() -> FrozenClock:
    # Wednesday 2024-03-13 15:00 UTC, 11:00 in New York, market open
    return FrozenClock(datetime(2024, 3, 13, 15, 0, tzinfo=UTC))


@pytest.fixture()
def conn() -> Iterator[duckdb.DuckDBPyConnection]:
    connection = duckdb.connect(":memory:")
    try:
        yield connection
    finally:
        connection.close()


@pytest.fixture()
def store(conn: duckdb.DuckDBPyConnection, clock: FrozenClock) -> TimeSeriesStore:
    return TimeSeriesStore(connection=conn, clock=clock)


def _make_candle(
    bucket_key: str,
    close: float = 100.0,
    *,
    symbol: str = "AAPL",
    open: float | None = None,
    high: float | None = None,
    low: float | None = None,
    volume: int = 1_000,
) -> Candle:
    open_ = close if open is None else open
    return Candle(
        symbol=symbol,
        bucket_key=bucket_key,
        open=open_,
        high=max(open_, close) if high is None else high,
        low=min(open_, close) if low is None else low,
        close=close,
        volume=volume,
    )


@pytest.fixture()
def make_candle():
    return _make_candle

