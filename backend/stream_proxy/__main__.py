"""CLI entry point for launching the stream proxy with Uvicorn."""
import logging

import uvicorn

from .app import create_app
from .settings import ProxySettings


def main() -> None:
    """Start a development server for the stream proxy."""
    settings = ProxySettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
