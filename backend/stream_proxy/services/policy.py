"""Response header policy: resource kinds, CORS and caching."""
from __future__ import annotations

from enum import Enum

from ..settings import ProxySettings
from .fetcher import (
    BINARY_CONTENT_TYPE,
    PLAYLIST_CONTENT_TYPE,
    SEGMENT_CONTENT_TYPE,
    FetchedResource,
    url_suffix,
)

NO_CACHE = "no-cache, no-store, must-revalidate"
ALLOWED_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = "Origin, X-Requested-With, Content-Type, Accept, Range"

# Upstream headers that describe the upstream transfer, not our response.
HOP_BY_HOP_HEADERS = frozenset(
    {"content-encoding", "content-length", "connection", "transfer-encoding", "keep-alive"}
)


class ResourceKind(str, Enum):
    """Classification of a fetched resource for header decisions."""

    PLAYLIST = "playlist"
    SEGMENT = "segment"
    KEY = "key"
    OTHER = "other"


def classify_resource(url: str, content_type: str | None) -> ResourceKind:
    """Classify by URL suffix first, then by content type."""

    suffix = url_suffix(url)
    normalized_type = (content_type or "").lower()
    if suffix == ".m3u8" or "mpegurl" in normalized_type:
        return ResourceKind.PLAYLIST
    if suffix == ".ts" or "video/mp2t" in normalized_type:
        return ResourceKind.SEGMENT
    if suffix == ".key":
        return ResourceKind.KEY
    return ResourceKind.OTHER


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Cross-Origin-Resource-Policy": "cross-origin",
    }


def preflight_headers(settings: ProxySettings) -> dict[str, str]:
    headers = cors_headers()
    headers["Access-Control-Max-Age"] = str(settings.preflight_max_age)
    return headers


def no_cache_headers() -> dict[str, str]:
    return {"Cache-Control": NO_CACHE, "Pragma": "no-cache", "Expires": "0"}


def cache_headers(kind: ResourceKind, settings: ProxySettings) -> dict[str, str]:
    """Segments are briefly cacheable; everything else is never cached."""

    if kind is ResourceKind.SEGMENT:
        return {"Cache-Control": f"public, max-age={settings.segment_max_age}"}
    return no_cache_headers()


def response_content_type(kind: ResourceKind, resource: FetchedResource) -> str:
    if kind is ResourceKind.PLAYLIST:
        return PLAYLIST_CONTENT_TYPE
    if kind is ResourceKind.SEGMENT:
        return SEGMENT_CONTENT_TYPE
    if kind is ResourceKind.KEY:
        return BINARY_CONTENT_TYPE
    return resource.content_type


def build_response_headers(
    kind: ResourceKind, resource: FetchedResource, settings: ProxySettings
) -> list[tuple[str, str]]:
    """Assemble the headers for a proxied resource response.

    Playlists are rewritten, so upstream headers are not carried over; other
    resources keep the upstream headers minus transfer-level ones. The
    content type, cache and CORS policy always win.
    Repeated upstream headers such as ``Set-Cookie`` stay separate entries.
    """

    overrides = {"Content-Type": response_content_type(kind, resource)}
    overrides.update(cache_headers(kind, settings))
    overrides.update(cors_headers())
    lowered = {name.lower() for name in overrides}

    headers: list[tuple[str, str]] = []
    if kind is not ResourceKind.PLAYLIST:
        headers.extend(
            (name, value)
            for name, value in resource.upstream_headers
            if name.lower() not in HOP_BY_HOP_HEADERS and name.lower() not in lowered
        )
    headers.extend(overrides.items())
    return headers
