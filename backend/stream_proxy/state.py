"""Shared state container for the stream proxy."""
from __future__ import annotations

from dataclasses import dataclass

import httpx

from .services import ResourceFetcher, StreamProxyService, create_http_client
from .settings import ProxySettings


@dataclass(slots=True)
class AppState:
    """Holds the process-wide upstream client and the services built on it."""

    settings: ProxySettings
    client: httpx.AsyncClient
    fetcher: ResourceFetcher
    proxy_service: StreamProxyService

    def __init__(
        self, settings: ProxySettings, transport: httpx.AsyncBaseTransport | None = None
    ) -> None:
        self.settings = settings
        self.client = create_http_client(settings, transport=transport)
        self.fetcher = ResourceFetcher(self.client, settings)
        self.proxy_service = StreamProxyService(self.fetcher, settings)

    async def aclose(self) -> None:
        """Release pooled upstream connections."""

        await self.client.aclose()
