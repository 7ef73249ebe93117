"""Tie outbound work to the lifetime of the inbound request.

ASGI servers do not cancel a handler when its client disconnects, so an
abandoned request would otherwise keep the upstream call (and its cost)
running. ``run_until_disconnected`` races the work against a watcher
polling ``request.is_disconnected()`` and cancels whichever loses.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, TypeVar

from fastapi import Request

from grammar_gateway.core.errors import ClientDisconnectedAppError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _wait_for_disconnect(request: Request, poll_interval: float) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(poll_interval)


async def run_until_disconnected(
    request: Request,
    work: Awaitable[T],
    *,
    poll_interval: float = 0.5,
) -> T:
    """Await ``work`` unless the client disconnects first.

    Args:
        request: Inbound request whose connection bounds the work.
        work: Coroutine to run (typically the upstream call).
        poll_interval: Seconds between disconnect checks.

    Returns:
        The result of ``work``.

    Raises:
        ClientDisconnectedAppError: If the client went away; ``work`` has
            been cancelled by then.
        Exception: Whatever ``work`` raised.
    """

    work_task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request, poll_interval))

    try:
        done, _ = await asyncio.wait(
            {work_task, watcher},
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        work_task.cancel()
        watcher.cancel()
        raise

    if work_task in done:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher
        return work_task.result()

    work_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await work_task
    logger.info("request.client_disconnected", extra={"path": request.url.path})
    raise ClientDisconnectedAppError(
        code="client_disconnected",
        message="Client closed request",
    )
