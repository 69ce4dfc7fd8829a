"""Helpers shared across CLI commands."""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

import typer

from tickerdeck.cli.constants import (
    PROVIDER_EXIT_CODE,
    STORAGE_EXIT_CODE,
    SYSTEM_EXIT_CODE,
    VALIDATION_EXIT_CODE,
)
from tickerdeck.cli.formatters import OutputFormatter, create_formatter
from tickerdeck.core.exceptions import (
    ConfigError,
    DataValidationError,
    ProviderError,
    StorageError,
    TickerdeckError,
)


@dataclass(slots=True)
class CLIOptions:
    """Resolved options derived from the Typer context."""

    format: str = "table"
    output_path: Path | None = None
    no_color: bool = False
    log_level: str | None = None
    config_path: Path | None = None
    database: str | None = None
    provider: str | None = None


def get_cli_options(ctx: typer.Context) -> CLIOptions:
    """Extract :class:`CLIOptions` from the Typer context object."""

    ctx.ensure_object(dict)
    data = ctx.obj or {}
    return CLIOptions(
        format=str(data.get("format", "table")),
        output_path=data.get("output_path"),
        no_color=bool(data.get("no_color", False)),
        log_level=data.get("log_level"),
        config_path=data.get("config_path"),
        database=data.get("database"),
        provider=data.get("provider"),
    )


def prepare_output(ctx: typer.Context) -> tuple[OutputFormatter, TextIO, ExitStack]:
    """Resolve formatter and writable stream for the current command."""

    options = get_cli_options(ctx)
    formatter = create_formatter(options.format, no_color=options.no_color)

    stack = ExitStack()
    stream: TextIO
    if options.output_path is not None:
        try:
            stream = stack.enter_context(open(options.output_path, "w", encoding="utf-8"))
        except OSError as exc:
            stack.close()
            emit_error(f"Unable to open '{options.output_path}': {exc}", "OUTPUT_WRITE_ERROR")
            raise typer.Exit(code=VALIDATION_EXIT_CODE) from exc
    else:
        stream = sys.stdout
    return formatter, stream, stack


def emit_rows(
    ctx: typer.Context,
    rows: Sequence[Mapping[str, object]],
    columns: Sequence[str] | None = None,
) -> None:
    formatter, stream, stack = prepare_output(ctx)
    with stack:
        formatter.render(rows, stream=stream, columns=columns)


def emit_error(message: str, code: str, *, details: Mapping[str, object] | None = None) -> None:
    """Print a structured error payload to stderr."""

    payload: dict[str, object] = {"code": code, "message": message}
    if details:
        payload["details"] = _sanitize_details(details)
    typer.echo(json.dumps(payload, ensure_ascii=False, default=str), err=True)


def _sanitize_details(details: Mapping[str, object]) -> Mapping[str, object]:
    sanitized: dict[str, object] = {}
    for key, value in details.items():
        if isinstance(value, str | int | float | bool) or value is None:
            sanitized[key] = value
        elif isinstance(value, Mapping):
            sanitized[key] = _sanitize_details(value)
        elif isinstance(value, Sequence) and not isinstance(value, str | bytes | bytearray):
            sanitized[key] = [str(item) for item in value]
        else:
            sanitized[key] = str(value)
    return sanitized


@contextmanager
def exit_on_error() -> Iterator[None]:
    """Translate tickerdeck errors into an error payload and an exit code."""

    try:
        yield
    except (DataValidationError, ConfigError) as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=VALIDATION_EXIT_CODE) from error
    except ProviderError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=PROVIDER_EXIT_CODE) from error
    except StorageError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=STORAGE_EXIT_CODE) from error
    except TickerdeckError as error:
        emit_error(error.message, error.error_code, details=error.details)
        raise typer.Exit(code=SYSTEM_EXIT_CODE) from error


def split_symbols(symbols: str | None) -> list[str] | None:
    """Parse a comma separated option; ``None`` means "use the configured list"."""

    if symbols is None:
        return None
    return [value.strip() for value in symbols.split(",") if value.strip()]


__all__ = [
    "CLIOptions",
    "emit_error",
    "emit_rows",
    "exit_on_error",
    "get_cli_options",
    "prepare_output",
    "split_symbols",
]
