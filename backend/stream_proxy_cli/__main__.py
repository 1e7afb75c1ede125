"""Run the stream proxy CLI with ``python -m backend.stream_proxy_cli``."""
from __future__ import annotations

from .app import app


def main() -> None:
    app(prog_name="stream-proxy-cli")


if __name__ == "__main__":
    main()
