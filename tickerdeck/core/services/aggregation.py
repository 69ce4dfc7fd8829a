"""Roll fine candles up into coarser ones."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from tickerdeck.core.exceptions import DataValidationError
from tickerdeck.core.models import Candle

CalendarKey = Callable[[Candle], str]


def combine(group: Sequence[Candle]) -> Candle:
    """Merge an ordered, non-empty run of candles into one."""

    first, last = group[0], group[-1]
    return Candle(
        symbol=first.symbol,
        bucket_key=first.bucket_key,
        open=first.open,
        high=max(candle.high for candle in group),
        low=min(candle.low for candle in group),
        close=last.close,
        volume=sum(candle.volume for candle in group),
    )


def aggregate(candles: Sequence[Candle], group_size: int) -> list[Candle]:
    """Group ascending candles into consecutive chunks of ``group_size``.

    The trailing chunk is emitted even when it is shorter than
    ``group_size``. An empty input yields an empty list.
    """

    if group_size < 1:
        raise DataValidationError(
            "group_size must be at least 1",
            validation_errors={"group_size": group_size},
        )
    return [combine(candles[start : start + group_size]) for start in range(0, len(candles), group_size)]


def iso_week_key(candle: Candle) -> str:
    """ISO year and week of the candle's date, e.g. ``2024-W01``."""

    iso_year, iso_week, _ = candle.trade_date.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def aggregate_by_calendar(candles: Sequence[Candle], key: CalendarKey = iso_week_key) -> list[Candle]:
    """Group candles sharing a calendar key and combine each group.

    Within a group candles are ordered by bucket key (ties keep input order),
    so ``open`` comes from the earliest date and ``close`` from the latest.
    Groups are returned ordered by their earliest date; calendar periods
    without candles produce nothing.
    """

    groups: dict[str, list[Candle]] = {}
    for candle in candles:
        groups.setdefault(key(candle), []).append(candle)

    combined = [combine(sorted(group, key=lambda c: c.bucket_key)) for group in groups.values()]
    combined.sort(key=lambda c: c.bucket_key)
    return combined


__all__ = ["CalendarKey", "aggregate", "aggregate_by_calendar", "combine", "iso_week_key"]
