"""Command line interface for the HLS stream proxy."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer
import uvicorn

from backend.stream_proxy import create_app
from backend.stream_proxy.providers import classify_provider, requires_query_preservation
from backend.stream_proxy.services import RewriteContext, normalize_target_url, rewrite_playlist
from backend.stream_proxy.services.errors import InvalidURLError
from backend.stream_proxy.settings import ProxySettings

from .client import create_client


DEFAULT_PROXY_BASE = "http://localhost:8000"

app = typer.Typer(help="Inspect and exercise the HLS stream proxy.")


def _proxy_base_option() -> typer.Option:
    return typer.Option(
        DEFAULT_PROXY_BASE,
        "--proxy-base",
        help="Base URL of a running stream proxy.",
        show_default=True,
        envvar="STREAM_PROXY_BASE",
    )


def _validated_url(url: str) -> str:
    try:
        return normalize_target_url(url)
    except InvalidURLError as exc:
        typer.echo(f"Invalid URL: {url}", err=True)
        raise typer.Exit(code=2) from exc


@app.command()
def health(proxy_base: str = _proxy_base_option()) -> None:
    """Call the /health endpoint and pretty-print the response."""

    with create_client(proxy_base) as client:
        response = client.get("/health")
        response.raise_for_status()
        typer.echo(json.dumps(response.json(), indent=2, ensure_ascii=False))


@app.command()
def fetch(
    url: str = typer.Argument(..., help="Upstream URL to fetch through the proxy."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the response body to this file instead of stdout."
    ),
    show_headers: bool = typer.Option(
        True,
        "--headers/--no-headers",
        help="Print the proxy response status and headers.",
        show_default=True,
    ),
    proxy_base: str = _proxy_base_option(),
    proxy_path: str = typer.Option("/stream-proxy", help="Route prefix of the proxy."),
) -> None:
    """GET a resource through a running proxy."""

    target = _validated_url(url)
    with create_client(proxy_base) as client:
        response = client.get("/" + proxy_path.strip("/"), params={"url": target})

    if show_headers:
        typer.echo(f"HTTP {response.status_code}", err=output is None)
        for name, value in response.headers.items():
            typer.echo(f"{name}: {value}", err=output is None)

    if response.status_code >= 400:
        typer.echo(response.text, err=True)
        raise typer.Exit(code=1)

    if output is not None:
        output.write_bytes(response.content)
        typer.echo(f"Wrote {len(response.content)} bytes to {output}")
    else:
        typer.echo(response.text)


@app.command()
def rewrite(
    playlist: Path = typer.Argument(..., exists=True, dir_okay=False, help="Local .m3u8 file."),
    base_url: str = typer.Option(..., "--base-url", help="URL the playlist was downloaded from."),
    proxy_path: Optional[str] = typer.Option(None, help="Route prefix written into the output."),
) -> None:
    """Rewrite a local playlist the way the proxy would serve it."""

    settings = ProxySettings()
    target = _validated_url(base_url)
    context = RewriteContext.for_target(
        target,
        proxy_path=proxy_path or settings.normalized_proxy_path,
        proxy_origin=settings.public_origin,
        uri_tags=settings.rewrite_uri_tags,
    )
    typer.echo(rewrite_playlist(playlist.read_text(encoding="utf-8"), context))


@app.command()
def probe(url: str = typer.Argument(..., help="Upstream URL to classify.")) -> None:
    """Show the provider profile and rewrite decisions for a URL."""

    target = _validated_url(url)
    profile = classify_provider(target)
    context = RewriteContext.for_target(target, profile=profile)
    payload = {
        "url": target,
        "provider": profile.name,
        "extra_headers": dict(profile.extra_headers),
        "cookie_tokens": list(profile.cookie_tokens),
        "preserve_query": requires_query_preservation(target, profile),
        "cache_bust": profile.cache_bust,
        "base_url": context.base_url,
    }
    typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Bind address (defaults to settings)."),
    port: Optional[int] = typer.Option(None, help="Bind port (defaults to settings)."),
) -> None:
    """Start the proxy with Uvicorn."""

    settings = ProxySettings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(create_app(settings), host=host or settings.host, port=port or settings.port)
