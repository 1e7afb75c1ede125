"""HLS playlist rewriting.

Every reference in a playlist is replaced by a proxy URL so the browser
fetches segments, keys and nested playlists through the proxy as well.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
import time
from typing import Iterable
from urllib.parse import parse_qs, quote, urljoin, urlsplit, urlunsplit

from ..providers import ProviderProfile, classify_provider, requires_query_preservation
from .errors import InvalidURLError, RewriteFailure
from .fetcher import url_suffix
from .targets import normalize_target_url

logger = logging.getLogger(__name__)

_URI_ATTRIBUTE = re.compile(r'URI="([^"]*)"')

# Characters encodeURIComponent leaves untouched.
_COMPONENT_SAFE = "!~*'()"


@dataclass(slots=True)
class RewriteContext:
    """Per-playlist rewrite decisions, built once per fetched playlist."""

    base_url: str
    preserve_query: bool = False
    cache_bust: bool = False
    timestamp: int = 0
    proxy_path: str = "/stream-proxy"
    proxy_origin: str | None = None
    uri_tags: tuple[str, ...] = ("#EXT-X-KEY",)
    base_query: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.base_query = urlsplit(self.base_url).query if self.preserve_query else ""

    @classmethod
    def for_target(
        cls,
        target_url: str,
        *,
        profile: ProviderProfile | None = None,
        proxy_path: str = "/stream-proxy",
        proxy_origin: str | None = None,
        uri_tags: Iterable[str] = ("#EXT-X-KEY",),
        now: float | None = None,
    ) -> "RewriteContext":
        """Derive the context for a playlist fetched from ``target_url``."""

        profile = profile or classify_provider(target_url)
        preserve = requires_query_preservation(target_url, profile)
        timestamp = int((time.time() if now is None else now) * 1000)
        return cls(
            base_url=directory_url(target_url, keep_query=preserve),
            preserve_query=preserve,
            cache_bust=profile.cache_bust,
            timestamp=timestamp,
            proxy_path="/" + proxy_path.strip("/"),
            proxy_origin=proxy_origin,
            uri_tags=tuple(uri_tags),
        )


def directory_url(url: str, *, keep_query: bool) -> str:
    """Truncate ``url`` to its directory, always dropping the fragment.

    The query string survives only when ``keep_query`` is set.
    """

    parts = urlsplit(url)
    directory = parts.path.rsplit("/", 1)[0] + "/"
    query = parts.query if keep_query else ""
    return urlunsplit((parts.scheme, parts.netloc, directory, query, ""))


def proxy_reference(resolved_url: str, context: RewriteContext) -> str:
    """Return the proxy-relative URL wrapping ``resolved_url``."""

    reference = f"{context.proxy_path}?url={quote(resolved_url, safe=_COMPONENT_SAFE)}"
    if context.cache_bust and url_suffix(resolved_url) == ".m3u8":
        reference += f"&t={context.timestamp}"
    return reference


class PlaylistRewriter:
    """Rewrites playlist text line by line against a ``RewriteContext``."""

    def __init__(self, context: RewriteContext) -> None:
        self.context = context

    def rewrite(self, playlist_text: str) -> str:
        text = playlist_text.lstrip("\ufeff")
        return "\n".join(self.rewrite_line(line) for line in text.split("\n"))

    def rewrite_line(self, line: str) -> str:
        body, ending = (line[:-1], "\r") if line.endswith("\r") else (line, "")
        stripped = body.strip()
        if not stripped:
            return line

        try:
            if stripped.startswith("#"):
                if self._carries_uri(stripped):
                    return _URI_ATTRIBUTE.sub(self._rewrite_uri_attribute, body) + ending
                return line
            return proxy_reference(self.resolve(stripped), self.context) + ending
        except RewriteFailure as exc:
            logger.warning("Leaving playlist line unmodified (%s): %s", exc, stripped[:100])
            return line

    def resolve(self, reference: str) -> str:
        """Resolve a playlist reference to an absolute upstream URL."""

        unwrapped = self._unwrap_proxy_reference(reference)
        if unwrapped is not None:
            return unwrapped

        if reference.startswith(("http://", "https://")):
            resolved = reference
        else:
            try:
                resolved = urljoin(self.context.base_url, reference)
                parts = urlsplit(resolved)
            except ValueError as exc:
                raise RewriteFailure(f"unresolvable reference: {exc}") from exc
            if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
                raise RewriteFailure("reference did not resolve to an absolute HTTP URL")
            if self.context.preserve_query and self.context.base_query and not parts.query:
                resolved = urlunsplit(
                    (parts.scheme, parts.netloc, parts.path, self.context.base_query, parts.fragment)
                )
        return resolved

    def _carries_uri(self, directive: str) -> bool:
        return 'URI="' in directive and any(directive.startswith(tag) for tag in self.context.uri_tags)

    def _rewrite_uri_attribute(self, match: re.Match[str]) -> str:
        uri = match.group(1).strip()
        if not uri:
            return match.group(0)
        return f'URI="{proxy_reference(self.resolve(uri), self.context)}"'

    def _unwrap_proxy_reference(self, reference: str) -> str | None:
        """Return the upstream URL inside an existing proxy URL, if any."""

        try:
            parts = urlsplit(reference)
        except ValueError:
            return None

        if parts.scheme or parts.netloc:
            if not self.context.proxy_origin:
                return None
            origin = urlsplit(self.context.proxy_origin)
            if (parts.scheme, parts.netloc) != (origin.scheme, origin.netloc):
                return None
        elif not reference.startswith("/"):
            return None

        proxy_path = self.context.proxy_path
        if parts.path != proxy_path and not parts.path.startswith(proxy_path + "/"):
            return None

        inner = parse_qs(parts.query).get("url", [None])[0] or parts.query
        try:
            target = normalize_target_url(inner)
        except InvalidURLError:
            return None
        return self._unwrap_proxy_reference(target) or target


def rewrite_playlist(playlist_text: str, context: RewriteContext) -> str:
    """Rewrite every reference in ``playlist_text`` to route through the proxy."""

    return PlaylistRewriter(context).rewrite(playlist_text)
