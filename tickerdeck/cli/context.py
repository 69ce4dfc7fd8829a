"""Wire configuration, storage, provider and services for a CLI invocation."""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

import typer

from tickerdeck.cli.utils import get_cli_options
from tickerdeck.core.config import ConfigManager, TickerdeckConfig
from tickerdeck.core.data.ingestion import IngestionReconciler
from tickerdeck.core.data.providers import MarketDataProvider, create_provider
from tickerdeck.core.data.storage import DuckDBConnectionFactory, DuckDBFactoryConfig, TimeSeriesStore
from tickerdeck.core.exceptions import StorageError
from tickerdeck.core.logging import configure_logging
from tickerdeck.core.services import RangeResolver


@dataclass(slots=True)
class AppContext:
    """Collaborators built for one command."""

    config: TickerdeckConfig
    store: TimeSeriesStore
    provider: MarketDataProvider
    resolver: RangeResolver
    reconciler: IngestionReconciler


def load_config(ctx: typer.Context) -> TickerdeckConfig:
    """Resolve the configuration, applying command-line overrides."""

    options = get_cli_options(ctx)
    manager = ConfigManager(options.config_path)
    overrides: dict[str, dict[str, object]] = {}
    if options.database:
        overrides["storage"] = {"database": options.database}
    if options.provider:
        overrides["provider"] = {"name": options.provider}
    if options.log_level:
        overrides["logging"] = {"level": options.log_level}
    if overrides:
        manager.update_config(**overrides)
    return manager.get_config()


def build_context(config: TickerdeckConfig) -> AppContext:
    logging_config = config.logging
    configure_logging(
        level=logging_config.level,
        file_output=bool(logging_config.file),
        file_path=logging_config.file,
    )

    provider = create_provider(config.provider.name)
    factory = DuckDBConnectionFactory(
        DuckDBFactoryConfig(database=config.storage.database, pragmas={"threads": config.storage.threads})
    )
    try:
        store = TimeSeriesStore(factory)
    except StorageError:
        asyncio.run(provider.close())
        raise
    return AppContext(
        config=config,
        store=store,
        provider=provider,
        resolver=RangeResolver(store, market_timezone=config.ingestion.market_timezone),
        reconciler=IngestionReconciler(store, provider, config),
    )


@contextmanager
def open_context(ctx: typer.Context) -> Iterator[AppContext]:
    """Build the app context, then close its provider and store afterwards."""

    app_context = build_context(load_config(ctx))
    try:
        yield app_context
    finally:
        try:
            asyncio.run(app_context.provider.close())
        finally:
            app_context.store.close()


__all__ = ["AppContext", "build_context", "load_config", "open_context"]
