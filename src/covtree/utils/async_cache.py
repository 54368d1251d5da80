"""Single-flight async value cache that forgets failures."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class CellState(Enum):
    """Lifecycle state of an :class:`AsyncCell`."""

    EMPTY = "empty"
    PENDING = "pending"
    READY = "ready"


@dataclass(slots=True)
class _Pending(Generic[_T]):
    task: asyncio.Task[_T]


@dataclass(slots=True)
class _Ready(Generic[_T]):
    value: _T


class AsyncCell(Generic[_T]):
    """Holds at most one in-flight or completed computation.

    ``EMPTY -> PENDING`` when :meth:`get` starts the factory,
    ``PENDING -> READY`` when it succeeds and ``PENDING -> EMPTY`` when it
    fails or is cancelled, so the next :meth:`get` starts over. Callers that
    arrive while a computation is pending share its task; the task is
    shielded so one caller giving up does not cancel it for the others.

    Args:
        name: Label used in log messages.
    """

    def __init__(self, name: str = "cell") -> None:
        self._name = name
        self._slot: _Pending[_T] | _Ready[_T] | None = None

    @classmethod
    def ready(cls, value: _T, name: str = "cell") -> AsyncCell[_T]:
        """Create a cell that already holds *value*."""
        cell: AsyncCell[_T] = cls(name)
        cell._slot = _Ready(value)
        return cell

    @property
    def state(self) -> CellState:
        if self._slot is None:
            return CellState.EMPTY
        if isinstance(self._slot, _Pending):
            return CellState.PENDING
        return CellState.READY

    def peek(self) -> _T | None:
        """Return the cached value without waiting, or ``None`` if not ready."""
        if isinstance(self._slot, _Ready):
            return self._slot.value
        return None

    async def get(self, factory: Callable[[], Awaitable[_T]]) -> _T:
        """Return the cached value, starting *factory* if nothing is cached."""
        slot = self._slot
        if isinstance(slot, _Ready):
            return slot.value
        if slot is None:
            logger.debug("%s: starting computation", self._name)
            slot = _Pending(asyncio.ensure_future(self._run(factory)))
            self._slot = slot
        else:
            logger.debug("%s: joining pending computation", self._name)
        return await asyncio.shield(slot.task)

    def clear(self) -> None:
        """Forget any cached value. A pending computation keeps running but is not reused."""
        self._slot = None

    async def _run(self, factory: Callable[[], Awaitable[_T]]) -> _T:
        try:
            value = await factory()
        except BaseException as exc:
            if isinstance(self._slot, _Pending) and self._slot.task is asyncio.current_task():
                self._slot = None
            logger.debug("%s: computation failed (%s), cache cleared", self._name, exc)
            raise
        if isinstance(self._slot, _Pending) and self._slot.task is asyncio.current_task():
            self._slot = _Ready(value)
        logger.debug("%s: computation finished", self._name)
        return value
