"""Render command results as a Rich table or as JSON Lines."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TextIO

from rich.box import SIMPLE_HEAD
from rich.console import Console
from rich.table import Table
from rich.text import Text

Row = Mapping[str, object]

# columns whose sign is worth colouring
SIGNED_COLUMNS = frozenset({"change", "change_percent"})
INTEGER_COLUMNS = frozenset({"volume", "written_rows", "rejected_rows", "ticks_written", "purged_rows"})


def resolve_columns(rows: Sequence[Row], columns: Sequence[str] | None) -> list[str]:
    """Explicit columns win; otherwise the keys of the first row."""

    if columns:
        return list(columns)
    return list(rows[0]) if rows else []


class OutputFormatter:
    """Base class for CLI output formatters."""

    name: str

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        raise NotImplementedError


@dataclass(slots=True)
class TableFormatter(OutputFormatter):
    """Rich table with right-aligned numbers and coloured price changes."""

    name: str = "table"
    no_color: bool = False

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        console = Console(file=stream, no_color=self.no_color, color_system=None if self.no_color else "auto")
        names = resolve_columns(rows, columns)
        if names:
            table = Table(box=SIMPLE_HEAD, header_style="" if self.no_color else "bold")
            for column in names:
                table.add_column(column, justify="right" if self._is_numeric(rows, column) else "left")
            for row in rows:
                table.add_row(*(self._cell(column, row.get(column)) for column in names))
            console.print(table)
        if not rows:
            console.print("No data available.")

    @staticmethod
    def _is_numeric(rows: Sequence[Row], column: str) -> bool:
        sample = next((row.get(column) for row in rows if row.get(column) is not None), None)
        return isinstance(sample, int | float) and not isinstance(sample, bool)

    def _cell(self, column: str, value: object) -> Text | str:
        if value is None:
            return "-"
        if isinstance(value, bool) or not isinstance(value, int | float):
            return str(value)

        if column in INTEGER_COLUMNS:
            text = f"{int(value):,}"
        elif column == "change_percent":
            text = f"{value:+.2f}%"
        elif column in SIGNED_COLUMNS:
            text = f"{value:+.2f}"
        elif isinstance(value, float):
            text = f"{value:.2f}"
        else:
            text = str(value)

        if column in SIGNED_COLUMNS and not self.no_color and value:
            return Text(text, style="green" if value > 0 else "red")
        return text


@dataclass(slots=True)
class JSONLFormatter(OutputFormatter):
    """One JSON object per row, restricted to ``columns`` when given."""

    name: str = "jsonl"

    def render(self, rows: Sequence[Row], *, stream: TextIO, columns: Sequence[str] | None = None) -> None:
        for row in rows:
            record = {column: row.get(column) for column in columns} if columns else dict(row)
            stream.write(json.dumps(record, ensure_ascii=False, default=str))
            stream.write("\n")
        stream.flush()


FORMATTERS: dict[str, type[OutputFormatter]] = {
    "table": TableFormatter,
    "jsonl": JSONLFormatter,
}


def create_formatter(name: str, *, no_color: bool = False) -> OutputFormatter:
    """Instantiate a formatter by name; raises ``ValueError`` for unknown names."""

    normalized = name.strip().lower()
    if normalized not in FORMATTERS:
        raise ValueError(f"Unsupported format '{name}'. Available formats: {', '.join(FORMATTERS)}.")
    if normalized == "table":
        return TableFormatter(no_color=no_color)
    return FORMATTERS[normalized]()


__all__ = ["FORMATTERS", "JSONLFormatter", "OutputFormatter", "TableFormatter", "create_formatter", "resolve_columns"]
