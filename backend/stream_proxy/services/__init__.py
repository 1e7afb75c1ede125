"""Service layer for the stream proxy."""

from .errors import (
    InvalidURLError,
    ProxyError,
    RewriteFailure,
    UpstreamError,
    UpstreamUnreachableError,
)
from .fetcher import FetchedResource, ResourceFetcher, create_http_client, infer_content_type
from .policy import ResourceKind, classify_resource
from .proxy_service import ProxiedResponse, StreamProxyService
from .rewriter import PlaylistRewriter, RewriteContext, rewrite_playlist
from .targets import ProxyRequest, from_path_form, from_query_form, normalize_target_url

__all__ = [
    "FetchedResource",
    "InvalidURLError",
    "PlaylistRewriter",
    "ProxiedResponse",
    "ProxyError",
    "ProxyRequest",
    "ResourceFetcher",
    "ResourceKind",
    "RewriteContext",
    "RewriteFailure",
    "StreamProxyService",
    "UpstreamError",
    "UpstreamUnreachableError",
    "classify_resource",
    "create_http_client",
    "from_path_form",
    "from_query_form",
    "infer_content_type",
    "normalize_target_url",
    "rewrite_playlist",
]
