"""Wiring for a client session: HTTP clients, local cache and reconciler."""

from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

import httpx

from .config import Settings, settings as default_settings
from .database import Database
from .services.backfill import RuntimeBackfill
from .services.cache import LocalCache
from .services.metadata import MetadataClient
from .services.reconciler import CatalogReconciler
from .services.remote import RemoteStoreClient


@dataclass
class Session:
    """Everything a front end needs to drive one browsing session."""

    reconciler: CatalogReconciler
    backfill: RuntimeBackfill | None = None


@asynccontextmanager
async def open_session(
    app_settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    load: bool = True,
) -> AsyncIterator[Session]:
    """Open a client session and, unless ``load`` is False, run the startup loads."""

    config = app_settings or default_settings
    async with AsyncExitStack() as exit_stack:
        api_client = await exit_stack.enter_async_context(
            httpx.AsyncClient(
                base_url=str(config.api_base_url),
                timeout=httpx.Timeout(config.http_timeout_seconds, connect=10.0),
                transport=transport,
            )
        )
        database = Database(config.cache_database_url)
        await database.create_all()
        exit_stack.push_async_callback(database.dispose)

        cache = LocalCache(database.session_factory)
        remote = RemoteStoreClient(config, api_client)
        reconciler = await CatalogReconciler.create(config, remote, cache)

        backfill: RuntimeBackfill | None = None
        if config.metadata_api_key:
            metadata_http = await exit_stack.enter_async_context(
                httpx.AsyncClient(
                    base_url=str(config.metadata_api_url),
                    timeout=httpx.Timeout(15.0, connect=5.0),
                )
            )
            backfill = RuntimeBackfill(
                reconciler,
                MetadataClient(config, metadata_http),
                delay=config.metadata_lookup_delay,
            )

        if load:
            await reconciler.load_all()
        yield Session(reconciler=reconciler, backfill=backfill)
