from __future__ import annotations

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

import pytest

from tickerdeck.core.services.market_hours import US_EQUITIES, MarketHours, is_market_open

NEW_YORK = ZoneInfo("America/New_York")


@pytest.mark.parametrize(
    ("moment", "expected"),
    [
        (datetime(2024, 3, 13, 9, 29, tzinfo=NEW_YORK), False),
        (datetime(2024, 3, 13, 9, 30, tzinfo=NEW_YORK), True),
        (datetime(2024, 3, 13, 12, 0, tzinfo=NEW_YORK), True),
        (datetime(2024, 3, 13, 16, 0, tzinfo=NEW_YORK), True),
        (datetime(2024, 3, 13, 16, 1, tzinfo=NEW_YORK), False),
        (datetime(2024, 3, 16, 12, 0, tzinfo=NEW_YORK), False),  # Saturday
        (datetime(2024, 7, 4, 12, 0, tzinfo=NEW_YORK), False),  # holiday
    ],
)
def test_session_bounds(moment: datetime, expected: bool) -> None:
    assert US_EQUITIES.is_open(moment) is expected


def test_naive_moments_are_utc() -> None:
    # 15:00 UTC is 11:00 in New York during daylight saving time
    assert is_market_open(datetime(2024, 3, 13, 15, 0))
    assert not is_market_open(datetime(2024, 3, 13, 21, 0, tzinfo=UTC))


def test_trading_days() -> None:
    assert US_EQUITIES.is_trading_day(date(2024, 3, 13))
    assert not US_EQUITIES.is_trading_day(date(2024, 3, 17))
    assert not US_EQUITIES.is_trading_day(date(2024, 12, 25))


def test_custom_session() -> None:
    hours = MarketHours(timezone="Europe/London", session_open=time(8, 0), session_close=time(16, 30), holidays=frozenset())

    assert hours.is_open(datetime(2024, 1, 1, 9, 0, tzinfo=UTC))
    assert not hours.is_open(datetime(2024, 1, 1, 17, 0, tzinfo=UTC))
    assert hours.local(datetime(2024, 6, 3, 12, 0, tzinfo=UTC)).hour == 13
