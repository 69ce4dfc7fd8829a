"""Read-side commands: chart series, latest prices and statistics."""

from __future__ import annotations

from dataclasses import asdict

import typer

from tickerdeck.cli.context import open_context
from tickerdeck.cli.utils import emit_rows, exit_on_error
from tickerdeck.core.models import normalize_symbol

CANDLE_COLUMNS = ["bucket_key", "open", "high", "low", "close", "volume"]
LATEST_COLUMNS = ["symbol", "price", "change", "change_percent", "volume", "observed_at"]


def register(app: typer.Typer) -> None:
    """Register the read commands on the provided application."""

    app.command("chart")(chart_command)
    app.command("latest")(latest_command)
    app.command("stats")(stats_command)


def chart_command(
    ctx: typer.Context,
    symbol: str = typer.Argument(..., help="Ticker symbol, e.g. AAPL."),
    range_token: str = typer.Option(
        "1-month",
        "--range",
        "-r",
        help="intraday, 5-day, 1-month, 3-month, 6-month, 1-year or 5-year.",
        show_default=True,
    ),
) -> None:
    """Show the chart series for SYMBOL over a display range."""

    with exit_on_error(), open_context(ctx) as app_context:
        chart = app_context.resolver.get_chart_data(symbol, range_token)
    emit_rows(ctx, [candle.as_mapping() for candle in chart.data], CANDLE_COLUMNS)


def latest_command(ctx: typer.Context) -> None:
    """Show the latest stored price of every symbol."""

    with exit_on_error(), open_context(ctx) as app_context:
        prices = app_context.resolver.get_latest_prices()
    emit_rows(ctx, [price.as_mapping() for price in prices], LATEST_COLUMNS)


def stats_command(
    ctx: typer.Context,
    symbol: str | None = typer.Argument(None, help="Symbol for trailing-year statistics."),
) -> None:
    """Show database statistics, or trailing-year statistics for SYMBOL."""

    with exit_on_error(), open_context(ctx) as app_context:
        if symbol is None:
            rows = [asdict(app_context.store.database_stats())]
        else:
            stats = app_context.store.symbol_stats(normalize_symbol(symbol))
            rows = [asdict(stats)] if stats else []
    emit_rows(ctx, rows)


__all__ = ["chart_command", "latest_command", "register", "stats_command"]
