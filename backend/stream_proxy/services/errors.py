"""Error taxonomy for the stream proxy services."""
from __future__ import annotations


class ProxyError(RuntimeError):
    """Base class for failures raised while proxying a stream resource."""

    status_code = 500

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class InvalidURLError(ProxyError):
    """Raised when the target URL is missing or is not an absolute HTTP(S) URL."""

    status_code = 400


class UpstreamUnreachableError(ProxyError):
    """Raised on DNS, connect, or timeout failures talking to the upstream."""

    def __init__(self, message: str, *, url: str | None = None, details: str = "") -> None:
        super().__init__(message, url=url)
        self.details = details


class UpstreamError(ProxyError):
    """Raised when the upstream answered with a non-2xx status."""

    def __init__(
        self,
        *,
        url: str,
        status_code: int,
        reason: str = "",
        body: bytes = b"",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(
            f"Failed to fetch the resource: {status_code} {reason}".rstrip(), url=url
        )
        self.status_code = status_code
        self.reason = reason
        self.body = body
        self.headers = headers or {}


class RewriteFailure(ProxyError):
    """Raised for a single playlist line that cannot be resolved."""
