"""Result records for ingestion and maintenance runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True, frozen=True)
class SymbolFailure:
    """Why one symbol could not be ingested."""

    symbol: str
    code: str
    message: str

    def as_mapping(self) -> dict[str, str]:
        return {"symbol": self.symbol, "code": self.code, "message": self.message}


@dataclass(slots=True)
class IngestionReport:
    """Outcome of one ingestion batch."""

    batch_id: str
    operation: str
    requested: list[str] = field(default_factory=list)
    succeeded: list[str] = field(default_factory=list)
    failures: list[SymbolFailure] = field(default_factory=list)
    written_rows: int = 0
    rejected_rows: int = 0
    # fatal row issue code -> count
    rejection_codes: dict[str, int] = field(default_factory=dict)
    ticks_written: int = 0
    duration_ms: float = 0.0

    @property
    def failed_symbols(self) -> list[str]:
        return [failure.symbol for failure in self.failures]

    @property
    def ok(self) -> bool:
        return not self.failures

    def merge(self, other: IngestionReport) -> IngestionReport:
        """Fold ``other`` into this report, keeping this batch id.

        A symbol counts as succeeded only when no merged step failed it.
        """

        for symbol in other.requested:
            if symbol not in self.requested:
                self.requested.append(symbol)
        self.failures.extend(other.failures)
        failed = set(self.failed_symbols)
        succeeded = [s for s in [*self.succeeded, *other.succeeded] if s not in failed]
        self.succeeded = list(dict.fromkeys(succeeded))
        self.written_rows += other.written_rows
        self.rejected_rows += other.rejected_rows
        for code, count in other.rejection_codes.items():
            self.rejection_codes[code] = self.rejection_codes.get(code, 0) + count
        self.ticks_written += other.ticks_written
        self.duration_ms += other.duration_ms
        return self

    def as_mapping(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "operation": self.operation,
            "requested": list(self.requested),
            "succeeded": list(self.succeeded),
            "failures": [failure.as_mapping() for failure in self.failures],
            "written_rows": self.written_rows,
            "rejected_rows": self.rejected_rows,
            "rejection_codes": dict(self.rejection_codes),
            "ticks_written": self.ticks_written,
            "duration_ms": round(self.duration_ms, 3),
        }


@dataclass(slots=True)
class MaintenanceReport:
    """Outcome of a purge-and-compact run."""

    batch_id: str
    retention_days: int
    purged_rows: int = 0
    compacted: bool = False
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def as_mapping(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "retention_days": self.retention_days,
            "purged_rows": self.purged_rows,
            "compacted": self.compacted,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 3),
        }


__all__ = ["IngestionReport", "MaintenanceReport", "SymbolFailure"]
