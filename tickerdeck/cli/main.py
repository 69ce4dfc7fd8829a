"""Main entry point for the tickerdeck command line interface."""

from __future__ import annotations

from pathlib import Path

import typer

from tickerdeck.cli.chart import register as register_chart_commands
from tickerdeck.cli.formatters import create_formatter
from tickerdeck.cli.ingest import register as register_ingest_commands
from tickerdeck.core.logging import configure_logging


def create_app() -> typer.Typer:
    """Create a Typer application instance for tickerdeck."""

    app = typer.Typer(add_completion=False, help="Stock dashboard data store and updater")

    @app.callback()
    def main(
        ctx: typer.Context,
        format: str = typer.Option(
            "table",
            "--format",
            "-f",
            help="Output format (table or jsonl).",
            show_default=True,
        ),
        output: Path | None = typer.Option(
            None,
            "--output",
            "-o",
            help="Write output to a file instead of stdout.",
        ),
        log_level: str | None = typer.Option(
            None,
            "--log-level",
            help="Logging level; overrides the configured one.",
        ),
        no_color: bool = typer.Option(
            False,
            "--no-color",
            help="Disable colorized output for table format.",
        ),
        config: Path | None = typer.Option(
            None,
            "--config",
            "-c",
            help="Configuration file (TOML). Defaults to ~/.tickerdeck/config.toml.",
        ),
        database: str | None = typer.Option(None, "--database", help="DuckDB database path override."),
        provider: str | None = typer.Option(None, "--provider", help="Market-data provider override (yfinance, stub)."),
    ) -> None:
        ctx.ensure_object(dict)
        normalized_format = format.strip().lower()
        try:
            create_formatter(normalized_format, no_color=no_color)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="--format") from exc

        ctx.obj.update(
            {
                "format": normalized_format,
                "output_path": output,
                "log_level": log_level.upper() if log_level else None,
                "no_color": no_color,
                "config_path": config,
                "database": database,
                "provider": provider,
            }
        )
        if log_level:
            try:
                configure_logging(level=log_level)
            except ValueError as exc:
                raise typer.BadParameter(f"unknown log level {log_level!r}", param_hint="--log-level") from exc

    register_chart_commands(app)
    register_ingest_commands(app)
    return app


app = create_app()
