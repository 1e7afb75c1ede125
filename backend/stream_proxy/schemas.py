"""Pydantic models exposed by the stream proxy."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .services import ProxyError, UpstreamError, UpstreamUnreachableError


class HealthStatus(BaseModel):
    """Service health payload."""

    status: Literal["ok"] = Field(default="ok")
    version: str = Field(default="0.1.0", description="Semantic version of the proxy service.")


class ErrorPayload(BaseModel):
    """JSON body returned when a resource cannot be proxied."""

    error: str = Field(..., description="Human readable failure summary.")
    status: int | None = Field(default=None, description="HTTP status returned by the proxy.")
    url: str | None = Field(default=None, description="Target URL that failed.")
    details: str | None = Field(
        default=None, description="Transport error text or upstream status text."
    )

    @classmethod
    def from_error(cls, exc: ProxyError) -> "ErrorPayload":
        details: str | None = None
        if isinstance(exc, UpstreamError):
            details = exc.reason or None
        elif isinstance(exc, UpstreamUnreachableError):
            details = exc.details or None
        return cls(error=str(exc), status=exc.status_code, url=exc.url, details=details)
