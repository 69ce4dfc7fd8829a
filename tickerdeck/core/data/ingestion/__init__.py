"""Provider-to-store ingestion."""

from tickerdeck.core.data.ingestion.normalize import (
    NormalizedBatch,
    ValidationIssue,
    normalize_candle,
    normalize_rows,
    to_bucket_key,
)
from tickerdeck.core.data.ingestion.reconciler import IngestionReconciler, tick_candle
from tickerdeck.core.data.ingestion.reports import IngestionReport, MaintenanceReport, SymbolFailure
from tickerdeck.core.data.ingestion.strategies import (
    BatchFetch,
    FetchOutcome,
    PerSymbolFallback,
    select_quote_strategy,
)

__all__ = [
    "BatchFetch",
    "FetchOutcome",
    "IngestionReconciler",
    "IngestionReport",
    "MaintenanceReport",
    "NormalizedBatch",
    "PerSymbolFallback",
    "SymbolFailure",
    "ValidationIssue",
    "normalize_candle",
    "normalize_rows",
    "select_quote_strategy",
    "tick_candle",
    "to_bucket_key",
]
