"""Process-wide application context.

One :class:`AppContext` is built at startup and handed to the command
builders.  It owns the HTTP transport, the shared cache and the fetch
client; :func:`open_context` closes the transport on exit.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from chainchirp.config import Settings
from chainchirp.core.cache import CacheLayer
from chainchirp.core.fetch_client import FetchClient
from chainchirp.core.protocols import JsonTransport
from chainchirp.infra.providers import build_providers
from chainchirp.services.chain import ChainService
from chainchirp.services.market import MarketService

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppContext:
    settings: Settings
    client: FetchClient
    cache: CacheLayer
    chain: ChainService
    market: MarketService


def build_context(settings: Settings, transport: JsonTransport) -> AppContext:
    """Wire settings, providers, cache and services around *transport*."""
    client = FetchClient(
        transport,
        build_providers(settings.provider_urls),
        timeout=settings.request_timeout,
    )
    cache = CacheLayer(max_entries=settings.cache_max_entries)
    return AppContext(
        settings=settings,
        client=client,
        cache=cache,
        chain=ChainService(client, cache),
        market=MarketService(client, cache),
    )


@asynccontextmanager
async def open_context(
    settings: Settings,
    transport: JsonTransport | None = None,
) -> AsyncIterator[AppContext]:
    """Yield an :class:`AppContext`; a default httpx transport is closed on exit."""
    if transport is not None:
        yield build_context(settings, transport)
        return

    from chainchirp.infra.http_transport import HttpxTransport

    async with HttpxTransport(user_agent=settings.user_agent) as owned:
        logger.debug("http transport opened")
        yield build_context(settings, owned)
    logger.debug("http transport closed")
