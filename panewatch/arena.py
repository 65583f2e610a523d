"""Generation-checked arena for pane nodes.

Keys are ``(index, version)`` pairs. Removing a value bumps the slot's
version, so a key that outlived its node never resolves to whatever is
stored in the slot next.

Keys encode to a single integer token for persistence:

    token = version << 32 | index
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Iterator, TypeVar

V = TypeVar("V")

_INDEX_BITS = 32
_INDEX_MASK = (1 << _INDEX_BITS) - 1

# Highest slot index insert_at will grow the arena to. Restored keys come
# from session files, and every slot below the index gets allocated.
MAX_RESTORE_INDEX = (1 << 16) - 1


@dataclass(frozen=True, order=True)
class PaneKey:
    """Opaque handle to a node in a PaneArena."""

    index: int
    version: int

    def to_token(self) -> int:
        """Encode as a stable integer for session files."""
        return (self.version << _INDEX_BITS) | self.index

    @classmethod
    def from_token(cls, token: int | str) -> "PaneKey":
        """Decode a token written by to_token(). Accepts its decimal string too.

        Raises:
            ValueError: If the token is not a non-negative integer.
        """
        value = int(token)
        if value < 0:
            raise ValueError(f"Invalid pane key token: {token!r}")
        return cls(index=value & _INDEX_MASK, version=value >> _INDEX_BITS)

    def __repr__(self) -> str:
        return f"PaneKey({self.index}v{self.version})"


class _Slot(Generic[V]):
    __slots__ = ("version", "value", "occupied")

    def __init__(self) -> None:
        self.version = 1
        self.value: V | None = None
        self.occupied = False


class PaneArena(Generic[V]):
    """Dense map from PaneKey to value with slot reuse."""

    def __init__(self) -> None:
        self._slots: list[_Slot[V]] = []
        self._free: list[int] = []
        self._len = 0

    def insert(self, value: V) -> PaneKey:
        """Store a value and return its new key."""
        if self._free:
            index = self._free.pop()
            slot = self._slots[index]
        else:
            index = len(self._slots)
            slot = _Slot()
            self._slots.append(slot)
        slot.value = value
        slot.occupied = True
        self._len += 1
        return PaneKey(index, slot.version)

    def insert_at(self, key: PaneKey, value: V) -> None:
        """Store a value under a specific key (used when restoring sessions).

        Raises:
            KeyError: If the slot is already occupied.
            ValueError: If the key index is beyond MAX_RESTORE_INDEX.
        """
        if key.index > MAX_RESTORE_INDEX:
            raise ValueError(f"Pane key index {key.index} is out of range")
        while len(self._slots) <= key.index:
            self._free.append(len(self._slots))
            self._slots.append(_Slot())
        slot = self._slots[key.index]
        if slot.occupied:
            raise KeyError(f"Slot for {key!r} is already occupied")
        self._free.remove(key.index)
        slot.version = key.version
        slot.value = value
        slot.occupied = True
        self._len += 1

    def remove(self, key: PaneKey) -> V | None:
        """Remove and return the value for key, or None if it is not live."""
        slot = self._live_slot(key)
        if slot is None:
            return None
        value = slot.value
        slot.value = None
        slot.occupied = False
        slot.version += 1
        self._free.append(key.index)
        self._len -= 1
        return value

    def get(self, key: PaneKey | None) -> V | None:
        if key is None:
            return None
        slot = self._live_slot(key)
        return slot.value if slot is not None else None

    def keys(self) -> Iterator[PaneKey]:
        for index, slot in enumerate(self._slots):
            if slot.occupied:
                yield PaneKey(index, slot.version)

    def items(self) -> Iterator[tuple[PaneKey, V]]:
        for index, slot in enumerate(self._slots):
            if slot.occupied:
                yield PaneKey(index, slot.version), slot.value

    def _live_slot(self, key: PaneKey) -> _Slot[V] | None:
        if key.index >= len(self._slots):
            return None
        slot = self._slots[key.index]
        if not slot.occupied or slot.version != key.version:
            return None
        return slot

    def __getitem__(self, key: PaneKey) -> V:
        slot = self._live_slot(key)
        if slot is None:
            raise KeyError(key)
        return slot.value

    def __contains__(self, key: object) -> bool:
        return isinstance(key, PaneKey) and self._live_slot(key) is not None

    def __iter__(self) -> Iterator[PaneKey]:
        return self.keys()

    def __len__(self) -> int:
        return self._len
