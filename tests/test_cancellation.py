from __future__ import annotations

import asyncio

import pytest

from inklink.cancellation import CancellationToken, RequestCancelled, race
from inklink.errors import AIError, ErrorKind

pytestmark = pytest.mark.unit


def test_token_keeps_first_reason() -> None:
    token = CancellationToken()
    assert not token.cancelled
    token.raise_if_cancelled()

    token.cancel("stop pressed")
    token.cancel("second")

    assert token.cancelled
    assert token.reason == "stop pressed"
    with pytest.raises(RequestCancelled, match="stop pressed"):
        token.raise_if_cancelled()


@pytest.mark.asyncio
async def test_race_returns_work_result() -> None:
    async def work() -> str:
        await asyncio.sleep(0)
        return "done"

    assert await race(work(), CancellationToken(), timeout_s=5) == "done"
    assert await race(work()) == "done"


@pytest.mark.asyncio
async def test_race_timeout_cancels_work() -> None:
    started = asyncio.Event()
    cancelled = asyncio.Event()

    async def slow() -> None:
        started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    with pytest.raises(AIError) as exc:
        await race(slow(), timeout_s=0.01)

    assert exc.value.kind is ErrorKind.TIMEOUT
    assert exc.value.timeout_s == 0.01
    assert started.is_set()
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_race_token_fires_while_pending() -> None:
    token = CancellationToken()

    async def never() -> None:
        await asyncio.Event().wait()

    async def cancel_soon() -> None:
        await asyncio.sleep(0)
        token.cancel("user abort")

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(RequestCancelled) as exc:
        await race(never(), token, timeout_s=5)
    await canceller

    assert exc.value.reason == "user abort"


@pytest.mark.asyncio
async def test_race_without_timer_ends_only_on_token() -> None:
    token = CancellationToken()

    async def never() -> None:
        await asyncio.Event().wait()

    async def cancel_soon() -> None:
        await asyncio.sleep(0)
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(RequestCancelled) as exc:
        await race(never(), token)
    await canceller

    assert not isinstance(exc.value, AIError)
    assert exc.value.reason


@pytest.mark.asyncio
async def test_race_with_already_cancelled_token_never_starts_work() -> None:
    token = CancellationToken()
    token.cancel()
    ran = False

    async def work() -> None:
        nonlocal ran
        ran = True

    with pytest.raises(RequestCancelled):
        await race(work(), token)
    assert ran is False


@pytest.mark.asyncio
async def test_race_propagates_work_errors() -> None:
    async def boom() -> None:
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        await race(boom(), CancellationToken(), timeout_s=5)
