"""Quote fetch strategies: batch first, or one request per symbol."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field

from tickerdeck.core.data.ingestion.reports import SymbolFailure
from tickerdeck.core.data.providers import MarketDataProvider
from tickerdeck.core.exceptions import ProviderError, ProviderTimeoutError
from tickerdeck.core.logging import get_logger
from tickerdeck.core.models import Quote

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_MAX_CONCURRENCY = 4

TIMEOUT_CODE = "PROVIDER_TIMEOUT"
EMPTY_CODE = "EMPTY_RESULT"


def timeout_failure(provider: MarketDataProvider, symbol: str, timeout: float, what: str) -> SymbolFailure:
    error = ProviderTimeoutError(f"no {what} within {timeout}s", provider.name, timeout)
    return SymbolFailure(symbol, error.error_code, error.message)


@dataclass(slots=True)
class FetchOutcome:
    """Quotes obtained plus the symbols that could not be fetched."""

    quotes: dict[str, Quote] = field(default_factory=dict)
    failures: list[SymbolFailure] = field(default_factory=list)


class PerSymbolFallback:
    """Fetch each symbol separately with bounded concurrency and a per-call timeout."""

    name = "per_symbol"

    def __init__(
        self,
        provider: MarketDataProvider,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ):
        self.provider = provider
        self.timeout = timeout
        self.max_concurrency = max_concurrency

    async def _fetch_one(self, symbol: str, semaphore: asyncio.Semaphore) -> Quote | SymbolFailure:
        async with semaphore:
            try:
                quote = await asyncio.wait_for(self.provider.fetch_quote(symbol), self.timeout)
            except TimeoutError:
                return timeout_failure(self.provider, symbol, self.timeout, "quote")
            except ProviderError as exc:
                return SymbolFailure(symbol, exc.error_code, exc.message)
        if quote is None:
            return SymbolFailure(symbol, EMPTY_CODE, "provider returned no quote")
        return quote

    async def fetch(self, symbols: Sequence[str]) -> FetchOutcome:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(*(self._fetch_one(symbol, semaphore) for symbol in symbols))

        outcome = FetchOutcome()
        for symbol, result in zip(symbols, results, strict=True):
            if isinstance(result, SymbolFailure):
                outcome.failures.append(result)
            else:
                outcome.quotes[symbol] = result
        return outcome


class BatchFetch:
    """One bounded batch call; failures and gaps go to a per-symbol fallback."""

    name = "batch"

    def __init__(
        self,
        provider: MarketDataProvider,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        fallback: PerSymbolFallback | None = None,
    ):
        self.provider = provider
        self.timeout = timeout
        self.fallback = fallback or PerSymbolFallback(provider, timeout=timeout)

    async def fetch(self, symbols: Sequence[str]) -> FetchOutcome:
        if not symbols:
            return FetchOutcome()
        try:
            quotes = await asyncio.wait_for(self.provider.fetch_quotes(symbols), self.timeout)
        except TimeoutError:
            logger.warning(f"batch quote call timed out after {self.timeout}s; fetching per symbol")
            return await self.fallback.fetch(symbols)
        except ProviderError as exc:
            logger.warning(f"batch quote call failed ({exc.message}); fetching per symbol")
            return await self.fallback.fetch(symbols)

        outcome = FetchOutcome(quotes={s: quotes[s] for s in symbols if s in quotes})
        missing = [symbol for symbol in symbols if symbol not in outcome.quotes]
        if missing:
            logger.info(f"batch quote call missed {len(missing)} symbols; fetching them individually")
            retried = await self.fallback.fetch(missing)
            outcome.quotes.update(retried.quotes)
            outcome.failures.extend(retried.failures)
        return outcome


QuoteStrategy = PerSymbolFallback | BatchFetch


def select_quote_strategy(
    provider: MarketDataProvider,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> QuoteStrategy:
    """Use batch fetching when the provider supports it."""

    per_symbol = PerSymbolFallback(provider, timeout=timeout, max_concurrency=max_concurrency)
    if provider.supports_batch_quotes:
        return BatchFetch(provider, timeout=timeout, fallback=per_symbol)
    return per_symbol


__all__ = [
    "BatchFetch",
    "EMPTY_CODE",
    "FetchOutcome",
    "PerSymbolFallback",
    "QuoteStrategy",
    "TIMEOUT_CODE",
    "select_quote_strategy",
    "timeout_failure",
]
