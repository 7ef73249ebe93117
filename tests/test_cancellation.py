"""Tests for tying upstream work to the inbound connection."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from grammar_gateway.core.cancellation import run_until_disconnected
from grammar_gateway.core.errors import ClientDisconnectedAppError


def _request(disconnected: bool) -> MagicMock:
    request = MagicMock()
    request.is_disconnected = AsyncMock(return_value=disconnected)
    request.url.path = "/api/grammar"
    return request


@pytest.mark.asyncio
async def test_returns_result_when_client_stays() -> None:
    async def work() -> int:
        await asyncio.sleep(0.01)
        return 7

    result = await run_until_disconnected(_request(False), work(), poll_interval=0.005)

    assert result == 7


@pytest.mark.asyncio
async def test_propagates_work_errors() -> None:
    async def work() -> int:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await run_until_disconnected(_request(False), work(), poll_interval=0.005)


@pytest.mark.asyncio
async def test_disconnect_cancels_work() -> None:
    cancelled = asyncio.Event()

    async def work() -> int:
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return 1

    with pytest.raises(ClientDisconnectedAppError) as exc_info:
        await run_until_disconnected(_request(True), work(), poll_interval=0.005)

    assert exc_info.value.code == "client_disconnected"
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_disconnect_detected_while_waiting() -> None:
    request = MagicMock()
    request.url.path = "/api/grammar"
    request.is_disconnected = AsyncMock(side_effect=[False, False, True])

    async def work() -> int:
        await asyncio.sleep(5)
        return 1

    with pytest.raises(ClientDisconnectedAppError):
        await run_until_disconnected(request, work(), poll_interval=0.005)

    assert request.is_disconnected.await_count == 3
