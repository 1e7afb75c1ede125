"""Tests for the Typer-based stream proxy CLI."""
from __future__ import annotations

import importlib
import json
import sys
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from fastapi.testclient import TestClient
from typer.testing import CliRunner

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.stream_proxy import create_app  # noqa: E402
from backend.stream_proxy.settings import ProxySettings  # noqa: E402
from backend.stream_proxy_cli.app import app as cli  # noqa: E402

cli_app_module = importlib.import_module("backend.stream_proxy_cli.app")


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_client(monkeypatch: pytest.MonkeyPatch) -> TestClient:
    """Provide a TestClient and patch the CLI HTTP client factory."""

    def upstream(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith(".m3u8"):
            return httpx.Response(200, content=b"#EXTM3U\nseg.ts\n")
        if request.url.path.endswith(".ts"):
            return httpx.Response(200, content=b"segment-bytes")
        return httpx.Response(404, content=b"missing")

    app = create_app(settings=ProxySettings(), transport=httpx.MockTransport(upstream))
    test_client = TestClient(app)

    def _factory(base_url: str, *, timeout: float = 20.0, transport: Any = None):  # type: ignore[override]
        return test_client

    monkeypatch.setattr(cli_app_module, "create_client", _factory)
    return test_client


def test_health_command_prints_payload(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli, ["health"])

    assert result.exit_code == 0
    assert json.loads(result.output) == {"status": "ok", "version": "0.1.0"}


def test_fetch_command_prints_rewritten_playlist(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli, ["fetch", "https://cdn.example.com/live/index.m3u8", "--no-headers"])

    assert result.exit_code == 0
    assert "#EXTM3U" in result.output
    assert "/stream-proxy?url=https%3A%2F%2Fcdn.example.com%2Flive%2Fseg.ts" in result.output


def test_fetch_command_writes_output_file(
    runner: CliRunner, cli_client: TestClient, tmp_path: Path
) -> None:
    destination = tmp_path / "seg.ts"

    result = runner.invoke(
        cli, ["fetch", "https://cdn.example.com/live/seg.ts", "--output", str(destination)]
    )

    assert result.exit_code == 0
    assert destination.read_bytes() == b"segment-bytes"
    assert "HTTP 200" in result.output
    assert "video/mp2t" in result.output


def test_fetch_command_fails_on_upstream_error(runner: CliRunner, cli_client: TestClient) -> None:
    result = runner.invoke(cli, ["fetch", "https://cdn.example.com/live/missing.bin", "--no-headers"])

    assert result.exit_code == 1
    assert "missing.bin" in result.output


def test_fetch_command_rejects_invalid_url(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["fetch", "not-a-url"])

    assert result.exit_code == 2
    assert "Invalid URL" in result.output


def test_rewrite_command_rewrites_local_playlist(runner: CliRunner, tmp_path: Path) -> None:
    playlist = tmp_path / "master.m3u8"
    playlist.write_text("#EXTM3U\n#EXT-X-STREAM-INF:BANDWIDTH=1\nlow.m3u8\n", encoding="utf-8")

    result = runner.invoke(
        cli,
        [
            "rewrite",
            str(playlist),
            "--base-url",
            "https://host/path/master.m3u8?token=abc123",
            "--proxy-path",
            "/api/stream-proxy",
        ],
    )

    assert result.exit_code == 0
    variant = result.output.split("\n")[2]
    assert variant.startswith("/api/stream-proxy?url=")
    assert parse_qs(urlsplit(variant).query)["url"] == ["https://host/path/low.m3u8?token=abc123"]


def test_probe_command_reports_provider_decisions(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["probe", "https://dai.google.com/linear/master.m3u8?sid=9#x"])

    assert result.exit_code == 0
    payload = json.loads(result.output)
    assert payload["provider"] == "google-dai"
    assert payload["preserve_query"] is True
    assert payload["cache_bust"] is True
    assert payload["base_url"] == "https://dai.google.com/linear/?sid=9"
    assert payload["extra_headers"]["Sec-Fetch-Site"] == "cross-site"
