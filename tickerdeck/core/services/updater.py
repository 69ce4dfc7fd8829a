"""Periodic update jobs: live prices, end-of-day candles and nightly cleanup."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any
from zoneinfo import ZoneInfo

from tickerdeck.core.config import TickerdeckConfig, parse_clock_time
from tickerdeck.core.data.ingestion import IngestionReconciler, IngestionReport, MaintenanceReport
from tickerdeck.core.logging import get_logger
from tickerdeck.core.scheduler import CancellationToken, TaskRegistry

logger = get_logger(__name__)

PRICES_TASK = "update_prices"
DAILY_TASK = "update_daily"
CLEANUP_TASK = "cleanup"


def due_daily(now_local: datetime, at: tuple[int, int], last_run: date | None) -> bool:
    """True once per local day, from wall-clock time ``at`` onwards."""

    if last_run == now_local.date():
        return False
    return (now_local.hour, now_local.minute) >= at


def _format_elapsed(seconds: float) -> str:
    minutes = int(seconds // 60)
    return f"{minutes // 60}h {minutes % 60}m"


class UpdateCycle:
    """The three recurring jobs of a running dashboard backend."""

    def __init__(
        self,
        reconciler: IngestionReconciler,
        config: TickerdeckConfig | None = None,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._config = config or TickerdeckConfig()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._tz = ZoneInfo(self._config.ingestion.market_timezone)
        self._daily_at = parse_clock_time(self._config.schedule.daily_update_time, "schedule.daily_update_time")
        self._cleanup_at = parse_clock_time(self._config.schedule.cleanup_time, "schedule.cleanup_time")
        self.started_at = self._clock()
        self.update_count = 0
        self.last_daily_run: date | None = None
        self.last_cleanup_run: date | None = None
        self.last_report: IngestionReport | None = None

    def _local_now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)
        return now.astimezone(self._tz)

    async def update_prices(self, token: CancellationToken | None = None) -> IngestionReport | None:
        if token is not None and token.cancelled:
            return None
        self.update_count += 1
        report = await self._reconciler.refresh_quotes()
        self.last_report = report
        if report.failures:
            logger.warning(f"update #{self.update_count}: failed symbols {', '.join(report.failed_symbols)}")
        return report

    async def update_daily(self, token: CancellationToken | None = None) -> IngestionReport | None:
        """Refresh daily candles once per trading day after the configured time."""

        if token is not None and token.cancelled:
            return None
        now_local = self._local_now()
        if not self._reconciler.market_hours.is_trading_day(now_local.date()):
            return None
        if not due_daily(now_local, self._daily_at, self.last_daily_run):
            return None
        self.last_daily_run = now_local.date()
        logger.info(f"end of day update for {now_local.date()}")
        return await self._reconciler.refresh_daily()

    async def cleanup(self, token: CancellationToken | None = None) -> MaintenanceReport | None:
        if token is not None and token.cancelled:
            return None
        now_local = self._local_now()
        if not due_daily(now_local, self._cleanup_at, self.last_cleanup_run):
            return None
        self.last_cleanup_run = now_local.date()
        report = self._reconciler.run_maintenance()
        logger.info(f"cleanup purged {report.purged_rows} fine candles")
        return report

    def build_registry(self, registry: TaskRegistry | None = None) -> TaskRegistry:
        """Register the jobs; wall-clock jobs poll and gate themselves."""

        schedule = self._config.schedule
        registry = registry or TaskRegistry(clock=self._clock)
        registry.register(PRICES_TASK, self.update_prices, schedule.price_interval_minutes * 60, run_immediately=True)
        registry.register(DAILY_TASK, self.update_daily, schedule.poll_seconds)
        registry.register(CLEANUP_TASK, self.cleanup, schedule.poll_seconds)
        return registry

    def status(self) -> dict[str, Any]:
        now = self._clock()
        return {
            "update_count": self.update_count,
            "running_time": _format_elapsed((now - self.started_at).total_seconds()),
            "market_open": self._reconciler.market_hours.is_open(now),
            "symbol_count": len(self._config.ingestion.symbols),
            "last_daily_run": self.last_daily_run.isoformat() if self.last_daily_run else None,
            "last_cleanup_run": self.last_cleanup_run.isoformat() if self.last_cleanup_run else None,
        }


__all__ = ["CLEANUP_TASK", "DAILY_TASK", "PRICES_TASK", "UpdateCycle", "due_daily"]
