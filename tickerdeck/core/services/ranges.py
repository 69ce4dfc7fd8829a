"""Resolve display range tokens into store queries and aggregation plans."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

import pandas as pd

from tickerdeck.core.data.buckets import coarse_key, fine_key, parse_fine_key
from tickerdeck.core.data.storage import TimeSeriesStore
from tickerdeck.core.exceptions import DataValidationError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.models import Candle, ChartData, Granularity, LatestPrice, RangeToken
from tickerdeck.core.models.symbols import normalize_symbol
from tickerdeck.core.services.aggregation import aggregate, aggregate_by_calendar

logger = get_logger(__name__)

DEFAULT_MARKET_TIMEZONE = "America/New_York"

_MAX_TOKEN_LENGTH = 32


class AggregationMode(str, Enum):
    """How a resolved series is rolled up."""

    NONE = "none"
    FIXED = "fixed"
    CALENDAR_WEEK = "calendar_week"


@dataclass(frozen=True)
class RangePlan:
    """Concrete query and aggregation for one range token.

    ``lookback`` is ``None`` for unbounded history; ``today_only`` restricts
    the query to the current local calendar day.
    """

    granularity: Granularity
    token: RangeToken | None = None
    lookback: pd.DateOffset | None = None
    today_only: bool = False
    aggregation: AggregationMode = AggregationMode.NONE
    group_size: int = 1


RANGE_PLANS: dict[RangeToken, RangePlan] = {
    RangeToken.INTRADAY: RangePlan(Granularity.FINE, RangeToken.INTRADAY, today_only=True),
    # 5-minute candles rolled up into 30-minute ones
    RangeToken.FIVE_DAY: RangePlan(
        Granularity.FINE,
        RangeToken.FIVE_DAY,
        lookback=pd.DateOffset(days=5),
        aggregation=AggregationMode.FIXED,
        group_size=6,
    ),
    RangeToken.ONE_MONTH: RangePlan(Granularity.COARSE, RangeToken.ONE_MONTH, lookback=pd.DateOffset(months=1)),
    RangeToken.THREE_MONTH: RangePlan(Granularity.COARSE, RangeToken.THREE_MONTH, lookback=pd.DateOffset(months=3)),
    RangeToken.SIX_MONTH: RangePlan(Granularity.COARSE, RangeToken.SIX_MONTH, lookback=pd.DateOffset(months=6)),
    RangeToken.ONE_YEAR: RangePlan(Granularity.COARSE, RangeToken.ONE_YEAR, lookback=pd.DateOffset(years=1)),
    RangeToken.FIVE_YEAR: RangePlan(
        Granularity.COARSE,
        RangeToken.FIVE_YEAR,
        lookback=pd.DateOffset(years=5),
        aggregation=AggregationMode.CALENDAR_WEEK,
    ),
}

FALLBACK_PLAN = RangePlan(Granularity.COARSE)


def validate_range_token(range_token: object) -> str:
    """Return the trimmed token or raise for input that is not a usable token."""

    if not isinstance(range_token, str) or not range_token.strip() or len(range_token.strip()) > _MAX_TOKEN_LENGTH:
        raise DataValidationError(
            "malformed range token",
            validation_errors={"range": repr(range_token)},
        )
    return range_token.strip()


def plan_for(range_token: str) -> RangePlan:
    """Look up the plan for ``range_token``; unknown tokens get the raw coarse plan."""

    token = RangeToken.parse(range_token)
    if token is None:
        return FALLBACK_PLAN
    return RANGE_PLANS[token]


class RangeResolver:
    """Reads chart series from a :class:`TimeSeriesStore`. Never writes."""

    def __init__(
        self,
        store: TimeSeriesStore,
        *,
        market_timezone: str = DEFAULT_MARKET_TIMEZONE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._tz = ZoneInfo(market_timezone)
        self._clock = clock or store.now

    def _now(self) -> datetime:
        now = self._clock()
        return now if now.tzinfo else now.replace(tzinfo=UTC)

    def _local_today(self) -> date:
        return self._now().astimezone(self._tz).date()

    def _day_bounds(self, day: date) -> tuple[str, str]:
        start = datetime.combine(day, time(), tzinfo=self._tz)
        end = start + timedelta(days=1) - timedelta(seconds=1)
        return fine_key(start), fine_key(end)

    def _from_bucket(self, plan: RangePlan) -> str | None:
        if plan.lookback is None:
            return None
        if plan.granularity is Granularity.FINE:
            since = pd.Timestamp(self._now()) - plan.lookback
            return fine_key(since.to_pydatetime())
        since_day = (pd.Timestamp(self._local_today()) - plan.lookback).date()
        return coarse_key(since_day)

    def _intraday(self, symbol: str) -> list[Candle]:
        start, end = self._day_bounds(self._local_today())
        candles = self._store.query_candles(Granularity.FINE, symbol, start, end)
        if candles:
            return candles

        latest = self._store.latest_bucket_key(Granularity.FINE, symbol)
        if latest is None:
            return []
        session_day = parse_fine_key(latest).astimezone(self._tz).date()
        logger.debug(f"no intraday data today for {symbol}; using session of {session_day}")
        start, end = self._day_bounds(session_day)
        return self._store.query_candles(Granularity.FINE, symbol, start, end)

    def resolve(self, symbol: str, range_token: str) -> list[Candle]:
        """Return the ascending OHLCV series for ``symbol`` over ``range_token``."""

        symbol = normalize_symbol(symbol)
        range_token = validate_range_token(range_token)
        plan = plan_for(range_token)

        if plan.today_only:
            candles = self._intraday(symbol)
        else:
            candles = self._store.query_candles(plan.granularity, symbol, self._from_bucket(plan))

        if plan.aggregation is AggregationMode.FIXED:
            candles = aggregate(candles, plan.group_size)
        elif plan.aggregation is AggregationMode.CALENDAR_WEEK:
            candles = aggregate_by_calendar(candles)

        logger.debug(f"resolved {symbol} {plan.token.value if plan.token else range_token!r}: {len(candles)} candles")
        return candles

    def get_chart_data(self, symbol: str, range_token: str) -> ChartData:
        token_text = validate_range_token(range_token)
        plan = plan_for(token_text)
        data = self.resolve(symbol, token_text)
        return ChartData(
            symbol=normalize_symbol(symbol),
            range_token=plan.token.value if plan.token else token_text,
            data=data,
        )

    def get_latest_prices(self) -> list[LatestPrice]:
        return self._store.get_all_latest_prices()


__all__ = [
    "AggregationMode",
    "DEFAULT_MARKET_TIMEZONE",
    "FALLBACK_PLAN",
    "RANGE_PLANS",
    "RangePlan",
    "RangeResolver",
    "plan_for",
    "validate_range_token",
]
