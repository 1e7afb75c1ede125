"""Application factory for the stream proxy."""
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from .routers import health, stream
from .settings import ProxySettings
from .state import AppState


def create_app(
    settings: ProxySettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application."""

    resolved_settings = settings or ProxySettings()
    app_state = AppState(settings=resolved_settings, transport=transport)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        await app_state.aclose()

    app = FastAPI(title="HLS Stream Proxy", version="0.1.0", lifespan=lifespan)
    app.state.app_state = app_state
    app.state.settings = app_state.settings

    app.include_router(health.router)
    app.include_router(stream.router, prefix=resolved_settings.normalized_proxy_path)

    return app
