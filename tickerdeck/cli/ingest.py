"""Write-side commands: quote refresh, backfill, initial load, maintenance and the updater."""

from __future__ import annotations

import asyncio
import signal
from datetime import date, timedelta
from pathlib import Path

import typer

from tickerdeck.cli.context import AppContext, open_context
from tickerdeck.cli.utils import emit_rows, exit_on_error, split_symbols
from tickerdeck.core.data.ingestion import IngestionReport
from tickerdeck.core.exceptions import DataValidationError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.models import Granularity
from tickerdeck.core.services.updater import UpdateCycle

logger = get_logger(__name__)

REPORT_COLUMNS = [
    "operation",
    "requested",
    "succeeded",
    "failures",
    "written_rows",
    "rejected_rows",
    "ticks_written",
    "duration_ms",
]

SYMBOLS_OPTION = typer.Option(None, "--symbols", "-s", help="Comma separated symbols; defaults to the configured list.")


def register(app: typer.Typer) -> None:
    """Register the ingestion commands on the provided application."""

    app.command("refresh")(refresh_command)
    app.command("backfill")(backfill_command)
    app.command("load")(load_command)
    app.command("maintain")(maintain_command)
    app.command("run")(run_command)


def _report_row(report: IngestionReport) -> dict[str, object]:
    row = report.as_mapping()
    row["requested"] = len(report.requested)
    row["succeeded"] = len(report.succeeded)
    row["failures"] = ", ".join(f"{f.symbol}:{f.code}" for f in report.failures) or None
    return row


def _parse_date(value: str | None, param_hint: str) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"expected YYYY-MM-DD, got '{value}'", param_hint=param_hint) from exc


def refresh_command(ctx: typer.Context, symbols: str | None = SYMBOLS_OPTION) -> None:
    """Fetch live quotes and update latest prices."""

    with exit_on_error(), open_context(ctx) as app_context:
        report = asyncio.run(app_context.reconciler.refresh_quotes(split_symbols(symbols)))
    emit_rows(ctx, [_report_row(report)], REPORT_COLUMNS)


def backfill_command(
    ctx: typer.Context,
    symbols: str | None = SYMBOLS_OPTION,
    granularity: Granularity = typer.Option(Granularity.COARSE, "--granularity", "-g", case_sensitive=False),
    start: str | None = typer.Option(None, "--start", help="Start date (YYYY-MM-DD); defaults to 30 days ago."),
    end: str | None = typer.Option(
        None, "--end", help="End date (YYYY-MM-DD); defaults to today in the market timezone."
    ),
) -> None:
    """Fetch historical candles and upsert them."""

    end_date = _parse_date(end, "--end")
    start_date = _parse_date(start, "--start")
    if start_date and end_date and start_date > end_date:
        raise typer.BadParameter("start must not be after end", param_hint="--start")

    with exit_on_error(), open_context(ctx) as app_context:
        end_date = end_date or app_context.reconciler.local_today()
        start_date = start_date or end_date - timedelta(days=30)
        if start_date > end_date:
            raise DataValidationError(
                "start must not be after end",
                validation_errors={"start": start_date.isoformat(), "end": end_date.isoformat()},
            )
        report = asyncio.run(
            app_context.reconciler.backfill_history(split_symbols(symbols), granularity, start_date, end_date)
        )
    emit_rows(ctx, [_report_row(report)], REPORT_COLUMNS)


def load_command(ctx: typer.Context, symbols: str | None = SYMBOLS_OPTION) -> None:
    """Seed the store with quotes, daily history and recent intraday candles."""

    with exit_on_error(), open_context(ctx) as app_context:
        report = asyncio.run(app_context.reconciler.initial_load(split_symbols(symbols)))
    emit_rows(ctx, [_report_row(report)], REPORT_COLUMNS)


def maintain_command(
    ctx: typer.Context,
    retention_days: int | None = typer.Option(None, "--retention-days", min=1, help="Override fine-data retention."),
    backup: Path | None = typer.Option(
        None, "--backup", help="Afterwards export the database into this (new or empty) directory."
    ),
) -> None:
    """Purge expired intraday candles, compact the database and optionally back it up."""

    with exit_on_error(), open_context(ctx) as app_context:
        row = app_context.reconciler.run_maintenance(retention_days).as_mapping()
        if backup is not None:
            row["backup"] = str(app_context.store.backup(backup))
    emit_rows(ctx, [row])


async def run_updater(app_context: AppContext, duration: float | None = None) -> UpdateCycle:
    """Run the update jobs until interrupted or ``duration`` seconds elapse."""

    cycle = UpdateCycle(app_context.reconciler, app_context.config)
    registry = cycle.build_registry()
    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # not available on every platform or outside the main thread
            pass

    registry.start()
    logger.info(f"updater running for {len(app_context.config.ingestion.symbols)} symbols")
    try:
        await asyncio.wait_for(stop_event.wait(), duration)
    except TimeoutError:
        pass
    finally:
        await registry.stop(timeout=app_context.config.provider.timeout)
        logger.info(f"updater stopped after {cycle.update_count} price updates")
    return cycle


def run_command(
    ctx: typer.Context,
    duration: float | None = typer.Option(None, "--duration", min=0, help="Stop after this many seconds."),
) -> None:
    """Run the scheduled price, end-of-day and cleanup jobs."""

    with exit_on_error(), open_context(ctx) as app_context:
        cycle = asyncio.run(run_updater(app_context, duration))
    emit_rows(ctx, [cycle.status()])


__all__ = [
    "backfill_command",
    "load_command",
    "maintain_command",
    "refresh_command",
    "register",
    "run_command",
    "run_updater",
]
