"""Cooperative cancellation signal passed to coverage accessors."""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, TypeVar

from covtree.errors import OperationCancelledError

if TYPE_CHECKING:
    from collections.abc import Awaitable

_T = TypeVar("_T")


class CancellationToken:
    """Signal that an operation should stop.

    Backed by an ``asyncio.Event``. Providers poll
    :attr:`is_cancellation_requested` or call :meth:`raise_if_cancelled` at
    their suspension points; long waits can be raced against the token with
    :func:`run_with_cancellation`.
    """

    def __init__(self, *, cancellable: bool = True) -> None:
        self._event = asyncio.Event()
        self._cancellable = cancellable

    @classmethod
    def none(cls) -> CancellationToken:
        """Return a token that can never be cancelled."""
        return cls(cancellable=False)

    @property
    def is_cancellation_requested(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Request cancellation. Has no effect on :meth:`none` tokens."""
        if self._cancellable:
            self._event.set()

    def raise_if_cancelled(self) -> None:
        """Raise ``OperationCancelledError`` if cancellation was requested."""
        if self._event.is_set():
            msg = "Operation was cancelled"
            raise OperationCancelledError(msg)

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        await self._event.wait()


async def run_with_cancellation(awaitable: Awaitable[_T], token: CancellationToken | None) -> _T:
    """Await *awaitable*, aborting with ``OperationCancelledError`` if *token* fires first."""
    if token is None:
        return await awaitable
    if token.is_cancellation_requested:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled()

    work = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        waiter.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await waiter

    if work in done:
        return work.result()

    work.cancel()
    await asyncio.gather(work, return_exceptions=True)
    msg = "Operation was cancelled"
    raise OperationCancelledError(msg)
