"""Cooperative cancellation for in-flight requests.

A ``CancellationToken`` is created per call and threaded through every
suspension point (send, header wait, body read, each chunk read). Each of
those awaits goes through ``race()``, which abandons the pending work as soon
as the token fires or the optional timer elapses.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

from inklink.errors import AIError

if TYPE_CHECKING:
    from collections.abc import Awaitable

T = TypeVar("T")

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Request cancelled"


class RequestCancelled(Exception):
    """Raised at a suspension point once its token has been cancelled."""

    def __init__(self, reason: str = DEFAULT_CANCEL_REASON) -> None:
        super().__init__(reason)
        self.reason = reason


class CancellationToken:
    """One-shot cancellation signal for a single call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = DEFAULT_CANCEL_REASON) -> None:
        """Fire the token. Later calls keep the first reason."""
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelled(self._reason or DEFAULT_CANCEL_REASON)

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"


async def race(
    awaitable: Awaitable[T],
    token: CancellationToken | None = None,
    *,
    timeout_s: float | None = None,
) -> T:
    """Await *awaitable* against the token and an optional timer.

    Whichever settles first wins. A fired token raises ``RequestCancelled``;
    an elapsed timer raises a TIMEOUT ``AIError``. In both cases the pending
    work is cancelled before returning.
    """
    if token is not None and token.cancelled:
        # Close coroutines we will never schedule.
        close = getattr(awaitable, "close", None)
        if callable(close):
            close()
        token.raise_if_cancelled()

    work: asyncio.Future[T] = asyncio.ensure_future(awaitable)
    if token is None and timeout_s is None:
        return await work

    waiters: set[asyncio.Future[object]] = {work}
    watcher: asyncio.Future[None] | None = None
    if token is not None:
        watcher = asyncio.ensure_future(token.wait())
        waiters.add(watcher)

    try:
        done, _ = await asyncio.wait(
            waiters, timeout=timeout_s, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        if watcher is not None and not watcher.done():
            watcher.cancel()

    if work in done:
        return work.result()

    await _abandon(work)
    if timeout_s is None or (token is not None and token.cancelled):
        # Without a timer, only the token can have ended the wait.
        reason = token.reason if token is not None else None
        raise RequestCancelled(reason or DEFAULT_CANCEL_REASON)
    raise AIError.timeout(timeout_s)


async def _abandon(work: asyncio.Future[object]) -> None:
    """Cancel *work* and wait for it to unwind."""
    work.cancel()
    try:
        await work
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        # Cleanup should never mask the primary outcome.
        logger.debug("Abandoned request task failed during cancellation: %s", exc)
