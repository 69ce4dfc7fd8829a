"""Read-side services: aggregation, range resolution and the market calendar."""

from tickerdeck.core.services.aggregation import aggregate, aggregate_by_calendar, iso_week_key
from tickerdeck.core.services.market_hours import US_EQUITIES, MarketHours, is_market_open
from tickerdeck.core.services.ranges import FALLBACK_PLAN, RANGE_PLANS, RangePlan, RangeResolver, plan_for

__all__ = [
    "FALLBACK_PLAN",
    "MarketHours",
    "RANGE_PLANS",
    "RangePlan",
    "RangeResolver",
    "US_EQUITIES",
    "aggregate",
    "aggregate_by_calendar",
    "is_market_open",
    "iso_week_key",
    "plan_for",
]
