"""HTTP client helpers for the stream proxy CLI."""
from __future__ import annotations

import httpx

CLI_USER_AGENT = "stream-proxy-cli/0.1.0"


def create_client(
    base_url: str, *, timeout: float = 20.0, transport: httpx.BaseTransport | None = None
) -> httpx.Client:
    """Return a client bound to a running proxy.

    Redirects are not followed so the proxy's own status codes reach the user.
    """

    return httpx.Client(
        base_url=base_url,
        timeout=timeout,
        transport=transport,
        follow_redirects=False,
        headers={"User-Agent": CLI_USER_AGENT},
    )
