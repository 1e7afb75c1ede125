"""Runtime configuration for the stream proxy."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class ProxySettings(BaseSettings):
    """Environment-aware settings for the stream proxy service."""

    public_origin: str = Field(
        default="http://localhost:8000",
        description="Public origin of the proxy, sent upstream as Origin and Referer.",
    )
    proxy_path: str = Field(
        default="/stream-proxy",
        description="Route prefix of the proxy, also written into rewritten playlists.",
    )
    upstream_timeout: float = Field(
        default=15.0, description="Timeout in seconds for the single upstream request."
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT, description="User-Agent header sent upstream."
    )
    segment_max_age: int = Field(
        default=60, description="Cache lifetime in seconds for media segment responses."
    )
    preflight_max_age: int = Field(
        default=86400, description="Access-Control-Max-Age returned on preflight requests."
    )
    rewrite_uri_tags: list[str] = Field(
        default_factory=lambda: ["#EXT-X-KEY"],
        description="Playlist directives whose URI attribute is routed through the proxy.",
    )
    max_connections: int = Field(
        default=100, description="Connection limit for the shared upstream HTTP client."
    )
    max_keepalive_connections: int = Field(
        default=20, description="Idle keep-alive connections kept per client pool."
    )
    log_level: str = Field(default="INFO", description="Log level for the server entry point.")
    host: str = Field(default="0.0.0.0", description="Bind address for the development server.")
    port: int = Field(default=8000, description="Bind port for the development server.")

    model_config = SettingsConfigDict(
        env_prefix="STREAM_PROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def normalized_proxy_path(self) -> str:
        """Proxy path with a single leading slash and no trailing slash."""

        return "/" + self.proxy_path.strip("/")
