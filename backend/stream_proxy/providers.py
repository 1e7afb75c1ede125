"""Provider classification for upstream stream URLs.

Classification is a plain substring test against the target URL. The first
matching row of ``PROVIDER_TABLE`` wins; URLs matching no row use ``GENERIC``.
New CDNs are added by appending a row, without touching the fetcher or the
playlist rewriter.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

_BROWSER_FETCH_HEADERS = {
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "cross-site",
    "Sec-Fetch-Dest": "empty",
    "Accept-Language": "en-US,en;q=0.9",
}

# Literal substrings, not parsed query parameters.
TOKEN_QUERY_MARKERS = ("token=", "auth=")


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    """Request and rewrite behaviour attached to a class of upstream hosts."""

    name: str
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    preserve_query: bool = False
    cache_bust: bool = False
    cookie_tokens: tuple[str, ...] = ()


GENERIC = ProviderProfile(name="generic")

GOOGLE_DAI = ProviderProfile(
    name="google-dai",
    extra_headers=dict(_BROWSER_FETCH_HEADERS),
    preserve_query=True,
    cache_bust=True,
)

AKAMAI = ProviderProfile(
    name="akamai",
    extra_headers={**_BROWSER_FETCH_HEADERS, "Accept-Encoding": "gzip, deflate"},
    preserve_query=True,
    cache_bust=True,
    cookie_tokens=("hdntl",),
)

PROVIDER_TABLE: tuple[tuple[tuple[str, ...], ProviderProfile], ...] = (
    (("dai.google.com",), GOOGLE_DAI),
    (("akamaized.net", "akamaicdn"), AKAMAI),
)


def classify_provider(url: str) -> ProviderProfile:
    """Return the profile of the first table row with a matcher found in ``url``."""

    for matchers, profile in PROVIDER_TABLE:
        if any(matcher in url for matcher in matchers):
            return profile
    return GENERIC


def requires_query_preservation(url: str, profile: ProviderProfile) -> bool:
    """Whether segments must inherit the playlist's query string."""

    return profile.preserve_query or any(marker in url for marker in TOKEN_QUERY_MARKERS)
