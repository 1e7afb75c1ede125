"""Cancel in-flight work when the inbound client goes away."""
from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, TypeVar

from starlette.requests import Request

T = TypeVar("T")


class ClientDisconnected(Exception):
    """Raised when the inbound client disconnected before the work finished."""


async def _wait_for_disconnect(request: Request, interval: float) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(interval)


async def cancel_on_disconnect(
    request: Request, work: Awaitable[T], *, interval: float = 0.25
) -> T:
    """Await ``work`` unless ``request`` disconnects first, in which case cancel it.

    The cancelled work is awaited before ``ClientDisconnected`` is raised, so any
    upstream connection it held has been released by then.
    """

    task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request, interval))
    try:
        await asyncio.wait({task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for pending in (task, watcher):
            if not pending.done():
                pending.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await pending

    if task.cancelled():
        raise ClientDisconnected()
    return task.result()
