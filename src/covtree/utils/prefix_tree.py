"""Index-addressed prefix tree keyed by sequences of path segments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from covtree.errors import DuplicateKeyError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

_T = TypeVar("_T")

ROOT = 0
"""Index of the root position (the empty key)."""


@dataclass(slots=True)
class _Slot(Generic[_T]):
    """One position in the arena."""

    segment: str
    parent: int
    value: _T | None = None
    children: dict[str, int] = field(default_factory=dict)


class PrefixTree(Generic[_T]):
    """Prefix tree stored as a flat arena of slots.

    Every position is addressable both by its key and by an integer index,
    so algorithms can walk the tree without holding references to nodes.
    Child order follows insertion order.
    """

    def __init__(self) -> None:
        self._slots: list[_Slot[_T]] = [_Slot(segment="", parent=-1)]
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def insert(self, key: Iterable[str], value: _T) -> int:
        """Store *value* at *key*, creating intermediate positions.

        Returns the index of the position. Raises ``DuplicateKeyError`` if the
        position already holds a value.
        """
        index = ROOT
        for segment in key:
            slot = self._slots[index]
            child = slot.children.get(segment)
            if child is None:
                child = len(self._slots)
                self._slots.append(_Slot(segment=segment, parent=index))
                slot.children[segment] = child
            index = child

        slot = self._slots[index]
        if slot.value is not None:
            raise DuplicateKeyError(self.path_of(index))
        slot.value = value
        self._size += 1
        return index

    def index_of(self, key: Iterable[str]) -> int | None:
        """Return the index of the position at *key*, or ``None``."""
        index = ROOT
        for segment in key:
            child = self._slots[index].children.get(segment)
            if child is None:
                return None
            index = child
        return index

    def find(self, key: Iterable[str]) -> _T | None:
        """Return the value stored at exactly *key*, or ``None``."""
        index = self.index_of(key)
        if index is None:
            return None
        return self._slots[index].value

    def has_key(self, key: Iterable[str]) -> bool:
        """Return True if a value is stored at *key*."""
        return self.find(key) is not None

    def value_at(self, index: int) -> _T | None:
        return self._slots[index].value

    def set_value(self, index: int, value: _T) -> None:
        slot = self._slots[index]
        if slot.value is None:
            self._size += 1
        slot.value = value

    def children_of(self, index: int) -> list[int]:
        return list(self._slots[index].children.values())

    def path_of(self, index: int) -> tuple[str, ...]:
        """Rebuild the key of the position at *index*."""
        segments: list[str] = []
        while index != ROOT:
            slot = self._slots[index]
            segments.append(slot.segment)
            index = slot.parent
        return tuple(reversed(segments))

    def nodes(self) -> Iterator[tuple[tuple[str, ...], _T | None]]:
        """Yield ``(path, value)`` for every position below the root, pre-order."""
        stack = list(reversed(self.children_of(ROOT)))
        while stack:
            index = stack.pop()
            yield self.path_of(index), self._slots[index].value
            stack.extend(reversed(self.children_of(index)))

    def values(self) -> Iterator[_T]:
        """Yield every stored value, pre-order."""
        for _, value in self.nodes():
            if value is not None:
                yield value

    def post_order(self, start: int = ROOT) -> Iterator[int]:
        """Yield position indices below *start* with children before parents.

        *start* itself is not yielded.
        """
        stack: list[tuple[int, bool]] = [
            (child, False) for child in reversed(self.children_of(start))
        ]
        while stack:
            index, expanded = stack.pop()
            if expanded:
                yield index
                continue
            stack.append((index, True))
            stack.extend((child, False) for child in reversed(self.children_of(index)))
