from __future__ import annotations

from datetime import UTC, date, datetime

import pandas as pd
import pytest

from tickerdeck.core.data.ingestion.normalize import normalize_candle, normalize_rows, to_bucket_key
from tickerdeck.core.models import Granularity


@pytest.mark.parametrize(
    ("value", "granularity", "expected"),
    [
        ("2024-03-13", Granularity.COARSE, "2024-03-13"),
        (date(2024, 3, 13), Granularity.COARSE, "2024-03-13"),
        # 01:00 UTC on the 14th is still the 13th in New York
        (datetime(2024, 3, 14, 1, 0, tzinfo=UTC), Granularity.COARSE, "2024-03-13"),
        (pd.Timestamp("2024-03-13 09:30", tz="America/New_York"), Granularity.FINE, "2024-03-13T13:30:00Z"),
        ("2024-03-13T13:32:45Z", Granularity.FINE, "2024-03-13T13:30:00Z"),
        (1710336900, Granularity.FINE, "2024-03-13T13:35:00Z"),
        (1710336900000, Granularity.FINE, "2024-03-13T13:35:00Z"),
        ("not a date", Granularity.COARSE, None),
        (None, Granularity.FINE, None),
    ],
)
def test_to_bucket_key(value, granularity, expected) -> None:
    assert to_bucket_key(value, granularity) == expected


def test_normalize_accepts_mixed_case_keys() -> None:
    row = {"Date": "2024-03-13", "Open": 1.0, "High": 3.0, "Low": 0.5, "Close": 2.0, "Volume": 1500.0}

    candle, issues = normalize_candle("AAPL", row, Granularity.COARSE)

    assert issues == []
    assert candle is not None
    assert candle.bucket_key == "2024-03-13"
    assert (candle.open, candle.high, candle.low, candle.close, candle.volume) == (1.0, 3.0, 0.5, 2.0, 1500)


def test_missing_optional_fields_are_defaulted() -> None:
    candle, issues = normalize_candle("AAPL", {"date": "2024-03-13", "close": 10.0}, Granularity.COARSE)

    assert candle is not None
    assert (candle.open, candle.high, candle.low, candle.volume) == (10.0, 10.0, 10.0, 0)
    assert {issue.code for issue in issues} == {"MISSING_PRICE_DEFAULTED", "MISSING_VOLUME_DEFAULTED"}
    assert not any(issue.fatal for issue in issues)


@pytest.mark.parametrize(
    ("row", "code"),
    [
        ({"close": 1.0}, "MISSING_TIMESTAMP"),
        ({"date": "2024-03-13", "close": float("nan")}, "MISSING_CLOSE"),
        ({"date": "2024-03-13", "close": -1.0}, "NEGATIVE_PRICE"),
        ({"date": "2024-03-13", "close": 2.0, "open": 2.0, "high": 1.0, "low": 3.0}, "LOW_ABOVE_HIGH"),
        ({"date": "2024-03-13", "close": 2.0, "open": 2.0, "high": 2.0, "low": 2.0, "volume": -5}, "NEGATIVE_VOLUME"),
    ],
)
def test_invalid_rows_are_rejected(row, code) -> None:
    candle, issues = normalize_candle("AAPL", row, Granularity.COARSE, index=4)

    assert candle is None
    assert code in {issue.code for issue in issues if issue.fatal}
    assert all(issue.index == 4 for issue in issues)


def test_normalize_rows_collects_rejections() -> None:
    rows = [
        {"date": "2024-03-11", "open": 1, "high": 2, "low": 1, "close": 2, "volume": 10},
        {"date": None, "close": 2},
        {"date": "2024-03-12", "open": 2, "high": 3, "low": 2, "close": 3, "volume": 10},
    ]

    batch = normalize_rows("MSFT", rows, Granularity.COARSE)

    assert [candle.bucket_key for candle in batch.candles] == ["2024-03-11", "2024-03-12"]
    assert batch.rejected == 1
    assert [issue.index for issue in batch.issues] == [1]
    assert all(candle.symbol == "MSFT" for candle in batch.candles)
