"""FastAPI dependencies for the stream proxy."""
from fastapi import Depends, Request

from .services import StreamProxyService
from .settings import ProxySettings
from .state import AppState


def get_app_state(request: Request) -> AppState:
    """Resolve the shared application state from the FastAPI request."""
    return request.app.state.app_state


def get_settings(app_state: AppState = Depends(get_app_state)) -> ProxySettings:
    return app_state.settings


def get_proxy_service(app_state: AppState = Depends(get_app_state)) -> StreamProxyService:
    """Return the proxy service bound to the shared upstream client."""
    return app_state.proxy_service
