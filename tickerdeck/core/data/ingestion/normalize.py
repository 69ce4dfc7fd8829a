"""Turn untyped provider rows into validated candles."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from math import isfinite
from typing import Any
from zoneinfo import ZoneInfo

import pandas as pd

from tickerdeck.core.data.buckets import coarse_key, fine_key
from tickerdeck.core.models import Candle, Granularity

DEFAULT_MARKET_TZ = "America/New_York"

_TIMESTAMP_KEYS = ("timestamp", "datetime", "date", "time", "bucket_key")
_EPOCH_MILLIS_THRESHOLD = 1e11


@dataclass(slots=True, frozen=True)
class ValidationIssue:
    """A single problem found while normalizing a row."""

    index: int
    field: str
    code: str
    message: str
    fatal: bool = True


@dataclass(slots=True)
class NormalizedBatch:
    """Candles accepted from a batch plus the issues raised along the way."""

    candles: list[Candle] = field(default_factory=list)
    issues: list[ValidationIssue] = field(default_factory=list)
    rejected: int = 0

    def fatal_codes(self) -> Counter[str]:
        return Counter(issue.code for issue in self.issues if issue.fatal)


def _is_blank(value: object) -> bool:
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_float(value: object) -> float | None:
    if _is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if isfinite(number) else None


def _to_datetime(value: object) -> datetime | date | None:
    if _is_blank(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime | date):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        return datetime.fromtimestamp(seconds, tz=UTC)
    if isinstance(value, str):
        text = value.strip()
        if len(text) == 10:
            try:
                return date.fromisoformat(text)
            except ValueError:
                return None
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def to_bucket_key(
    value: object,
    granularity: Granularity,
    *,
    market_tz: str = DEFAULT_MARKET_TZ,
) -> str | None:
    """Convert a provider timestamp into a bucket key, or ``None`` if unusable.

    Coarse keys use the exchange-local trading date of aware timestamps and
    the literal date of naive ones. Fine keys are UTC, floored to the
    five-minute bucket.
    """

    moment = _to_datetime(value)
    if moment is None:
        return None

    if Granularity(granularity) is Granularity.COARSE:
        if isinstance(moment, datetime) and moment.tzinfo is not None:
            moment = moment.astimezone(ZoneInfo(market_tz))
        return coarse_key(moment)

    if not isinstance(moment, datetime):
        moment = datetime.combine(moment, datetime.min.time(), tzinfo=ZoneInfo(market_tz))
    return fine_key(moment, floor=True)


def _lowered(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).strip().lower(): value for key, value in row.items()}


def _timestamp_of(row: Mapping[str, Any]) -> object:
    for key in _TIMESTAMP_KEYS:
        if key in row and not _is_blank(row[key]):
            return row[key]
    return None


def normalize_candle(
    symbol: str,
    row: Mapping[str, Any],
    granularity: Granularity,
    *,
    index: int = 0,
    market_tz: str = DEFAULT_MARKET_TZ,
) -> tuple[Candle | None, list[ValidationIssue]]:
    """Validate one row; returns ``(None, issues)`` when it must be rejected."""

    values = _lowered(row)
    issues: list[ValidationIssue] = []

    bucket_key = to_bucket_key(_timestamp_of(values), granularity, market_tz=market_tz)
    if bucket_key is None:
        issues.append(ValidationIssue(index, "timestamp", "MISSING_TIMESTAMP", "no usable timestamp"))

    close = _to_float(values.get("close"))
    if close is None:
        issues.append(ValidationIssue(index, "close", "MISSING_CLOSE", "close is required"))
    elif close < 0:
        issues.append(ValidationIssue(index, "close", "NEGATIVE_PRICE", "close must be non-negative"))

    if issues:
        return None, issues
    assert close is not None and bucket_key is not None

    prices: dict[str, float] = {}
    for name in ("open", "high", "low"):
        value = _to_float(values.get(name))
        if value is None:
            issues.append(
                ValidationIssue(index, name, "MISSING_PRICE_DEFAULTED", f"{name} missing; defaulted to close", fatal=False)
            )
            value = close
        prices[name] = value

    if prices["high"] < prices["low"]:
        issues.append(ValidationIssue(index, "low_high", "LOW_ABOVE_HIGH", "low price cannot exceed high price"))
        return None, issues

    volume = _to_float(values.get("volume"))
    if volume is None:
        issues.append(ValidationIssue(index, "volume", "MISSING_VOLUME_DEFAULTED", "volume missing; defaulted to 0", fatal=False))
        volume = 0.0
    elif volume < 0:
        issues.append(ValidationIssue(index, "volume", "NEGATIVE_VOLUME", "volume must be non-negative"))
        return None, issues

    candle = Candle(
        symbol=symbol,
        bucket_key=bucket_key,
        open=prices["open"],
        high=prices["high"],
        low=prices["low"],
        close=close,
        volume=int(volume),
    )
    return candle, issues


def normalize_rows(
    symbol: str,
    rows: Iterable[Mapping[str, Any]],
    granularity: Granularity,
    *,
    market_tz: str = DEFAULT_MARKET_TZ,
) -> NormalizedBatch:
    """Normalize every row, collecting rejections instead of raising."""

    batch = NormalizedBatch()
    for index, row in enumerate(rows):
        candle, issues = normalize_candle(symbol, row, granularity, index=index, market_tz=market_tz)
        batch.issues.extend(issues)
        if candle is None:
            batch.rejected += 1
        else:
            batch.candles.append(candle)
    return batch


__all__ = [
    "NormalizedBatch",
    "ValidationIssue",
    "normalize_candle",
    "normalize_rows",
    "to_bucket_key",
]
