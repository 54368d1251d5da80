"""Minimal publish/subscribe helper for change notifications."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_E = TypeVar("_E")


class Subscription:
    """Handle returned by :meth:`Emitter.subscribe`; call :meth:`dispose` to unsubscribe."""

    def __init__(self, dispose: Callable[[], None]) -> None:
        self._dispose: Callable[[], None] | None = dispose

    def dispose(self) -> None:
        if self._dispose is not None:
            self._dispose()
            self._dispose = None

    @property
    def disposed(self) -> bool:
        return self._dispose is None


class Emitter(Generic[_E]):
    """Delivers events to registered listeners in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[_E], None]] = []

    def subscribe(self, listener: Callable[[_E], None]) -> Subscription:
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(_remove)

    def fire(self, event: _E) -> None:
        """Invoke every listener with *event*.

        Listeners added or removed while firing take effect on the next event.
        """
        for listener in list(self._listeners):
            listener(event)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def dispose(self) -> None:
        """Drop all listeners."""
        if self._listeners:
            logger.debug("Disposing emitter with %d listener(s)", len(self._listeners))
        self._listeners.clear()
