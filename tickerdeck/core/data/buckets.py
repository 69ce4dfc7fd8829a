"""Bucket key formatting shared by storage, ingestion and range resolution.

Coarse keys are exchange-local trading dates (``YYYY-MM-DD``); fine keys are
UTC instants with second precision (``YYYY-MM-DDTHH:MM:SSZ``). Both forms
sort lexicographically in time order, so the store compares them as strings.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

FINE_KEY_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
COARSE_KEY_FORMAT = "%Y-%m-%d"
FINE_BUCKET_MINUTES = 5


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def floor_to_bucket(value: datetime, minutes: int = FINE_BUCKET_MINUTES) -> datetime:
    """Floor an instant to the start of its ``minutes``-wide bucket."""

    value = as_utc(value)
    return value.replace(minute=value.minute - value.minute % minutes, second=0, microsecond=0)


def fine_key(value: datetime, *, floor: bool = False) -> str:
    value = floor_to_bucket(value) if floor else as_utc(value)
    return value.strftime(FINE_KEY_FORMAT)


def coarse_key(value: date | datetime) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime(COARSE_KEY_FORMAT)


def parse_fine_key(key: str) -> datetime:
    return datetime.strptime(key, FINE_KEY_FORMAT).replace(tzinfo=UTC)


def fine_cutoff_key(now: datetime, retention_days: int) -> str:
    """Fine key for the retention boundary ``now - retention_days``."""

    return fine_key(as_utc(now) - timedelta(days=retention_days))


__all__ = [
    "COARSE_KEY_FORMAT",
    "FINE_BUCKET_MINUTES",
    "FINE_KEY_FORMAT",
    "as_utc",
    "coarse_key",
    "fine_cutoff_key",
    "fine_key",
    "floor_to_bucket",
    "parse_fine_key",
]
