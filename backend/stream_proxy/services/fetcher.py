"""Upstream fetching for the stream proxy."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Mapping
from urllib.parse import parse_qs, urlsplit

import httpx

from ..providers import ProviderProfile, classify_provider
from ..settings import ProxySettings
from .errors import InvalidURLError, UpstreamError, UpstreamUnreachableError
from .targets import is_absolute_http_url

logger = logging.getLogger(__name__)

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
SEGMENT_CONTENT_TYPE = "video/mp2t"
BINARY_CONTENT_TYPE = "application/octet-stream"

SUFFIX_CONTENT_TYPES = {
    ".m3u8": PLAYLIST_CONTENT_TYPE,
    ".ts": SEGMENT_CONTENT_TYPE,
    ".key": BINARY_CONTENT_TYPE,
}


def url_suffix(url: str) -> str:
    """Return the lower-cased extension of the URL path, query and fragment excluded."""

    try:
        path = urlsplit(url).path
    except ValueError:
        path = url.split("?", 1)[0].split("#", 1)[0]
    last_segment = path.rsplit("/", 1)[-1].lower()
    if "." not in last_segment:
        return ""
    return "." + last_segment.rsplit(".", 1)[-1]


def infer_content_type(url: str) -> str:
    """Map a URL path suffix to a content type."""

    return SUFFIX_CONTENT_TYPES.get(url_suffix(url), BINARY_CONTENT_TYPE)


@dataclass(slots=True)
class FetchedResource:
    """Body and metadata of one successful upstream response."""

    url: str
    body: bytes
    content_type: str
    upstream_status: int
    upstream_headers: list[tuple[str, str]] = field(default_factory=list)
    provider: ProviderProfile | None = None

    @property
    def text(self) -> str:
        charset = "utf-8"
        for parameter in self.content_type.split(";")[1:]:
            key, _, value = parameter.strip().partition("=")
            if key.lower() == "charset" and value:
                charset = value.strip('"')
        try:
            text = self.body.decode(charset, errors="replace")
        except LookupError:
            text = self.body.decode("utf-8", errors="replace")
        return text.lstrip("\ufeff")


def create_http_client(
    settings: ProxySettings, *, transport: httpx.AsyncBaseTransport | None = None
) -> httpx.AsyncClient:
    """Instantiate the process-wide upstream client with pooled connections."""

    limits = httpx.Limits(
        max_connections=settings.max_connections,
        max_keepalive_connections=settings.max_keepalive_connections,
    )
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.upstream_timeout),
        limits=limits,
        follow_redirects=True,
        transport=transport,
    )


class ResourceFetcher:
    """Performs the single upstream GET for a proxied resource.

    The fetcher never retries and never caches; the only shared state is the
    pooled ``httpx.AsyncClient`` which is safe for concurrent use.
    """

    def __init__(self, client: httpx.AsyncClient, settings: ProxySettings) -> None:
        self._client = client
        self._settings = settings

    def build_headers(
        self,
        target_url: str,
        profile: ProviderProfile,
        forwarded_cookies: str | None = None,
        inbound_params: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Return the outbound request headers for ``target_url``."""

        origin = self._settings.public_origin.rstrip("/")
        headers = {
            "User-Agent": self._settings.user_agent,
            "Accept": "*/*",
            "Origin": origin,
            "Referer": origin + "/",
        }
        if forwarded_cookies:
            headers["Cookie"] = forwarded_cookies
        headers.update(profile.extra_headers)

        token_cookies = []
        for name in profile.cookie_tokens:
            value = _token_value(name, target_url, inbound_params or {})
            if value:
                token_cookies.append(f"{name}={value}")
        if token_cookies:
            if forwarded_cookies:
                token_cookies.append(forwarded_cookies)
            headers["Cookie"] = "; ".join(token_cookies)
        return headers

    async def fetch(
        self,
        target_url: str,
        forwarded_cookies: str | None = None,
        *,
        inbound_params: Mapping[str, str] | None = None,
    ) -> FetchedResource:
        """Fetch ``target_url`` and classify the response.

        Raises ``InvalidURLError`` for non-absolute URLs,
        ``UpstreamUnreachableError`` for transport failures and timeouts, and
        ``UpstreamError`` for non-2xx upstream statuses.
        """

        if not is_absolute_http_url(target_url):
            raise InvalidURLError("Invalid target URL", url=target_url)

        profile = classify_provider(target_url)
        headers = self.build_headers(target_url, profile, forwarded_cookies, inbound_params)
        logger.info("Proxying %s request for: %s", profile.name, target_url[:100])

        timeout = self._settings.upstream_timeout
        try:
            response = await asyncio.wait_for(
                self._client.get(target_url, headers=headers), timeout=timeout
            )
        except httpx.InvalidURL as exc:
            raise InvalidURLError("Invalid target URL", url=target_url) from exc
        except httpx.TimeoutException as exc:
            logger.warning("Timed out fetching %s", target_url[:100])
            raise UpstreamUnreachableError(
                "Failed to fetch the resource", url=target_url, details=f"Upstream timed out: {exc!r}"
            ) from exc
        except asyncio.TimeoutError as exc:
            logger.warning("Gave up on %s after %ss", target_url[:100], timeout)
            raise UpstreamUnreachableError(
                "Failed to fetch the resource",
                url=target_url,
                details=f"Upstream timed out after {timeout} seconds",
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("Request error fetching %s: %s", target_url[:100], exc)
            raise UpstreamUnreachableError(
                "Failed to fetch the resource", url=target_url, details=str(exc) or repr(exc)
            ) from exc

        upstream_headers = response.headers.multi_items()
        if not response.is_success:
            logger.warning(
                "Error fetching %s: %s %s",
                target_url[:100],
                response.status_code,
                response.reason_phrase,
            )
            raise UpstreamError(
                url=target_url,
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=response.content,
                headers=dict(response.headers),
            )

        content_type = response.headers.get("content-type") or infer_content_type(target_url)
        return FetchedResource(
            url=target_url,
            body=response.content,
            content_type=content_type,
            upstream_status=response.status_code,
            upstream_headers=upstream_headers,
            provider=profile,
        )


def _token_value(name: str, target_url: str, inbound_params: Mapping[str, str]) -> str | None:
    value = inbound_params.get(name)
    if value:
        return value
    try:
        query = urlsplit(target_url).query
    except ValueError:
        return None
    values = parse_qs(query).get(name)
    return values[0] if values else None
