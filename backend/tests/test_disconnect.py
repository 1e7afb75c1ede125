"""Tests for cancelling proxy work when the player disconnects."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.stream_proxy.utils.disconnect import (  # noqa: E402
    ClientDisconnected,
    cancel_on_disconnect,
)


class FakeRequest:
    """Stands in for a Starlette request with a fixed connection state."""

    def __init__(self, disconnected: bool) -> None:
        self.disconnected = disconnected
        self.polls = 0

    async def is_disconnected(self) -> bool:
        self.polls += 1
        return self.disconnected


def test_disconnect_cancels_pending_work() -> None:
    """A gone client should cancel the work before ClientDisconnected is raised."""

    state = {"cancelled": False}

    async def never_finishes() -> None:
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    async def _run() -> None:
        with pytest.raises(ClientDisconnected):
            await cancel_on_disconnect(FakeRequest(disconnected=True), never_finishes(), interval=0.01)
        # The cancellation has already run by the time the caller sees the error.
        assert state["cancelled"] is True

    asyncio.run(_run())


def test_finished_work_returns_its_result() -> None:
    """Work that completes while the client is connected should be returned."""

    request = FakeRequest(disconnected=False)

    async def quick() -> str:
        await asyncio.sleep(0)
        return "done"

    assert asyncio.run(cancel_on_disconnect(request, quick(), interval=0.01)) == "done"


def test_work_errors_propagate() -> None:
    async def failing() -> None:
        raise ValueError("upstream broke")

    with pytest.raises(ValueError, match="upstream broke"):
        asyncio.run(cancel_on_disconnect(FakeRequest(disconnected=False), failing(), interval=0.01))
