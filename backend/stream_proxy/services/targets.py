"""Normalisation of inbound proxy requests into a single shape."""
from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Mapping
from urllib.parse import unquote, urlsplit

from .errors import InvalidURLError

_COLLAPSED_SCHEME = re.compile(r"^(https?):/+", re.IGNORECASE)


@dataclass(slots=True)
class ProxyRequest:
    """A validated request to proxy ``target_url``."""

    target_url: str
    forwarded_cookies: str | None = None
    path_hint: str | None = None
    inbound_params: Mapping[str, str] = field(default_factory=dict)


def is_absolute_http_url(value: str) -> bool:
    """Return True when ``value`` parses as an absolute http(s) URL with a host."""

    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme.lower() in {"http", "https"} and bool(parts.hostname)


def normalize_target_url(raw: str | None) -> str:
    """Validate a target URL, percent-decoding it when it arrives encoded.

    A value that already parses as absolute is kept verbatim so that
    legitimately encoded characters inside upstream URLs survive.
    """

    if raw is None or not raw.strip():
        raise InvalidURLError("URL parameter is required")

    candidate = raw.strip()
    if is_absolute_http_url(candidate):
        return candidate

    decoded = candidate
    # Players occasionally double-encode the URL.
    for _ in range(2):
        decoded = unquote(decoded)
        if is_absolute_http_url(decoded):
            return decoded

    raise InvalidURLError("Invalid target URL", url=candidate)


def url_from_path_hint(path: str | None) -> str | None:
    """Reconstruct an absolute URL from a captured path such as ``https:/host/a.ts``."""

    if not path:
        return None
    match = _COLLAPSED_SCHEME.match(path.lstrip("/"))
    if not match:
        return None
    rest = path.lstrip("/")[match.end():]
    candidate = f"{match.group(1).lower()}://{rest}"
    return candidate if is_absolute_http_url(candidate) else None


def from_query_form(
    url_param: str | None,
    *,
    cookies: str | None = None,
    params: Mapping[str, str] | None = None,
) -> ProxyRequest:
    """Build a request from the ``?url=<encoded>`` entry shape."""

    return ProxyRequest(
        target_url=normalize_target_url(url_param),
        forwarded_cookies=cookies or None,
        inbound_params=dict(params or {}),
    )


def from_path_form(
    path: str,
    url_param: str | None,
    raw_query: str,
    *,
    cookies: str | None = None,
    params: Mapping[str, str] | None = None,
) -> ProxyRequest:
    """Build a request from the ``/<captured path>`` entry shape.

    Without a ``url`` parameter the whole raw query string is the encoded
    target; without a query string the captured path itself may be the URL.
    """

    if url_param:
        target = normalize_target_url(url_param)
    elif raw_query:
        target = normalize_target_url(raw_query)
    else:
        target = url_from_path_hint(path)
        if target is None:
            raise InvalidURLError("URL parameter is required")

    return ProxyRequest(
        target_url=target,
        forwarded_cookies=cookies or None,
        path_hint=path or None,
        inbound_params=dict(params or {}),
    )
