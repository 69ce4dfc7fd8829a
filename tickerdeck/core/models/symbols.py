"""Ticker symbol validation."""

from __future__ import annotations

import re
from collections.abc import Iterable

from tickerdeck.core.exceptions import DataValidationError

# Yahoo-style tickers: BRK-B, ^GSPC, EURUSD=X, 0700.HK
_SYMBOL_PATTERN = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=^]{0,19}$")


def normalize_symbol(symbol: object) -> str:
    """Return the upper-cased symbol or raise :class:`DataValidationError`."""

    if not isinstance(symbol, str):
        raise DataValidationError(
            "symbol must be a string",
            validation_errors={"symbol": repr(symbol)},
        )
    normalized = symbol.strip().upper()
    if not _SYMBOL_PATTERN.match(normalized):
        raise DataValidationError(
            f"malformed symbol {symbol!r}",
            validation_errors={"symbol": symbol},
        )
    return normalized


def normalize_symbols(symbols: Iterable[object]) -> list[str]:
    """Normalize and de-duplicate symbols, keeping first-seen order."""

    seen: dict[str, None] = {}
    for symbol in symbols:
        seen.setdefault(normalize_symbol(symbol), None)
    return list(seen)


__all__ = ["normalize_symbol", "normalize_symbols"]
