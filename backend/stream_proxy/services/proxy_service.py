"""Request orchestration: fetch, optionally rewrite, assemble headers."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging

from ..settings import ProxySettings
from .fetcher import FetchedResource, ResourceFetcher
from .policy import ResourceKind, build_response_headers, classify_resource
from .rewriter import RewriteContext, rewrite_playlist
from .targets import ProxyRequest

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProxiedResponse:
    """Status, body and headers ready to be returned to the player."""

    status_code: int
    body: bytes
    headers: list[tuple[str, str]] = field(default_factory=list)
    kind: ResourceKind = ResourceKind.OTHER


class StreamProxyService:
    """Runs one proxy request through the fetcher and the playlist rewriter."""

    def __init__(self, fetcher: ResourceFetcher, settings: ProxySettings) -> None:
        self._fetcher = fetcher
        self._settings = settings

    async def handle(self, request: ProxyRequest) -> ProxiedResponse:
        if request.path_hint:
            logger.info("Path %s resolved to %s", request.path_hint[:100], request.target_url[:100])
        resource = await self._fetcher.fetch(
            request.target_url,
            request.forwarded_cookies,
            inbound_params=request.inbound_params,
        )
        return self.assemble(resource)

    def assemble(self, resource: FetchedResource) -> ProxiedResponse:
        """Build the response for an already fetched resource."""

        kind = classify_resource(resource.url, resource.content_type)
        body = resource.body
        if kind is ResourceKind.PLAYLIST:
            context = RewriteContext.for_target(
                resource.url,
                profile=resource.provider,
                proxy_path=self._settings.normalized_proxy_path,
                proxy_origin=self._settings.public_origin,
                uri_tags=self._settings.rewrite_uri_tags,
            )
            body = rewrite_playlist(resource.text, context).encode("utf-8")
            logger.debug(
                "Rewrote playlist %s (preserve_query=%s, cache_bust=%s)",
                resource.url[:100],
                context.preserve_query,
                context.cache_bust,
            )

        headers = build_response_headers(kind, resource, self._settings)
        return ProxiedResponse(
            status_code=resource.upstream_status, body=body, headers=headers, kind=kind
        )
