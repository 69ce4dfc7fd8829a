"""US equity session calendar used to gate intraday tick capture."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

default_weekend = frozenset({5, 6})

# Fixed-date holidays as (month, day)
default_holidays = frozenset({(1, 1), (7, 4), (12, 25)})


@dataclass(frozen=True)
class MarketHours:
    """Regular trading session of one exchange in its local timezone."""

    timezone: str = "America/New_York"
    session_open: time = time(9, 30)
    session_close: time = time(16, 0)
    weekend_days: frozenset[int] = default_weekend
    holidays: frozenset[tuple[int, int]] = default_holidays

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local(self, moment: datetime) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        return moment.astimezone(self.tzinfo)

    def is_trading_day(self, day: date) -> bool:
        if day.weekday() in self.weekend_days:
            return False
        return (day.month, day.day) not in self.holidays

    def is_open(self, moment: datetime) -> bool:
        """Return ``True`` when ``moment`` falls inside the session, close inclusive."""

        local = self.local(moment)
        if not self.is_trading_day(local.date()):
            return False
        current = local.time().replace(second=0, microsecond=0)
        return self.session_open <= current <= self.session_close


US_EQUITIES = MarketHours()


def is_market_open(moment: datetime, hours: MarketHours = US_EQUITIES) -> bool:
    return hours.is_open(moment)


__all__ = ["MarketHours", "US_EQUITIES", "is_market_open"]
