"""Stream proxy endpoints.

Two entry shapes are served: ``GET <proxy-path>?url=<encoded>`` and
``GET <proxy-path>/<captured path>``. Both reduce to a ``ProxyRequest`` and
share the same fetch, rewrite and header policy.
"""
from __future__ import annotations

import logging
from typing import Callable

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from ..dependencies import get_proxy_service, get_settings
from ..schemas import ErrorPayload
from ..services import ProxyError, ProxyRequest, StreamProxyService, from_path_form, from_query_form
from ..services.policy import cors_headers, no_cache_headers, preflight_headers
from ..settings import ProxySettings
from ..utils.disconnect import ClientDisconnected, cancel_on_disconnect

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream-proxy"])

CLIENT_CLOSED_REQUEST = 499


def _error_response(exc: ProxyError) -> JSONResponse:
    payload = ErrorPayload.from_error(exc)
    headers = {**cors_headers(), **no_cache_headers()}
    return JSONResponse(
        status_code=exc.status_code,
        content=payload.model_dump(exclude_none=True),
        headers=headers,
    )


async def _proxy(
    request: Request,
    service: StreamProxyService,
    build: Callable[[], ProxyRequest],
) -> Response:
    try:
        proxy_request = build()
        proxied = await cancel_on_disconnect(request, service.handle(proxy_request))
    except ClientDisconnected:
        logger.info("Client disconnected, upstream request for %s cancelled", request.url.path)
        return Response(status_code=CLIENT_CLOSED_REQUEST)
    except ProxyError as exc:
        return _error_response(exc)

    response = Response(content=proxied.body, status_code=proxied.status_code)
    for name, value in proxied.headers:
        response.headers.append(name, value)
    return response


@router.get("", summary="Proxy a stream resource given as ?url=")
async def proxy_by_query(
    request: Request,
    service: StreamProxyService = Depends(get_proxy_service),
) -> Response:
    """Fetch the resource named by the ``url`` query parameter."""

    return await _proxy(
        request,
        service,
        lambda: from_query_form(
            request.query_params.get("url"),
            cookies=request.headers.get("cookie"),
            params=request.query_params,
        ),
    )


@router.get("/{path:path}", summary="Proxy a stream resource from a captured path")
async def proxy_by_path(
    path: str,
    request: Request,
    service: StreamProxyService = Depends(get_proxy_service),
) -> Response:
    """Fetch a resource whose URL is the ``url`` parameter or the raw query string."""

    return await _proxy(
        request,
        service,
        lambda: from_path_form(
            path,
            request.query_params.get("url"),
            request.url.query,
            cookies=request.headers.get("cookie"),
            params=request.query_params,
        ),
    )


@router.options("", include_in_schema=False)
@router.options("/{path:path}", include_in_schema=False)
def preflight(settings: ProxySettings = Depends(get_settings)) -> Response:
    """Answer CORS preflight requests without contacting any upstream."""

    return Response(status_code=204, headers=preflight_headers(settings))
