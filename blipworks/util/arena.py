"""Compacting slot arena with stable indices."""

from typing import Generic, Iterator, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class Arena(Generic[T]):
    """
    Sparse collection of elements addressed by slot index.

    An index returned by `add` stays valid until the element is removed.
    Removal leaves a hole that later insertions may reuse. Indices are only
    renumbered by `gc`, which packs the live elements densely while keeping
    their relative order; callers holding indices must resync them afterwards.
    """

    def __init__(self):
        self._slots: List[Optional[T]] = []
        self._free: List[int] = []

    def add(self, value: T) -> int:
        """Insert a value and return its slot index."""
        if self._free:
            index = self._free.pop()
            self._slots[index] = value
        else:
            index = len(self._slots)
            self._slots.append(value)
        return index

    def remove(self, index: int) -> Optional[T]:
        """Free a slot, returning the value it held (None if already free)."""
        if index < 0 or index >= len(self._slots):
            return None

        value = self._slots[index]
        if value is not None:
            self._slots[index] = None
            self._free.append(index)
        return value

    def get(self, index: int) -> Optional[T]:
        if 0 <= index < len(self._slots):
            return self._slots[index]
        return None

    def __getitem__(self, index: int) -> T:
        value = self._slots[index]
        if value is None:
            raise KeyError(f"Arena slot {index} is free")
        return value

    def __setitem__(self, index: int, value: T) -> None:
        if self._slots[index] is None:
            raise KeyError(f"Arena slot {index} is free")
        self._slots[index] = value

    def __contains__(self, index: int) -> bool:
        return self.get(index) is not None

    def __len__(self) -> int:
        return len(self._slots) - len(self._free)

    def num_free(self) -> int:
        """Number of holes left by removals."""
        return len(self._free)

    def capacity(self) -> int:
        """Number of slots, live and free."""
        return len(self._slots)

    def iter(self) -> Iterator[Tuple[int, T]]:
        """Iterate over (index, value) pairs of live slots in index order."""
        for index, value in enumerate(self._slots):
            if value is not None:
                yield index, value

    def __iter__(self) -> Iterator[Tuple[int, T]]:
        return self.iter()

    def values(self) -> Iterator[T]:
        for _, value in self.iter():
            yield value

    def gc(self) -> None:
        """Drop holes and renumber the live elements densely."""
        if not self._free:
            return

        self._slots = [value for value in self._slots if value is not None]
        self._free = []

    def clear(self) -> None:
        self._slots.clear()
        self._free.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Arena):
            return NotImplemented
        return list(self.iter()) == list(other.iter())

    def __repr__(self) -> str:
        return f"Arena(len={len(self)}, free={self.num_free()})"
