"""
Position Store - Sparse slot map for one binder.

Positions are non-negative integers. Empty positions are simply absent, and
removing an entry never compacts the remaining ones.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

from utils.binder_errors import PositionConflict
from utils.binder_models import CardEntry
from utils.constants import MAX_POSITION


def _check_position(position: Any) -> int:
    if isinstance(position, bool) or not isinstance(position, int):
        raise TypeError(f"Position must be an int, got {type(position).__name__}")
    if position < 0:
        raise ValueError(f"Position must be non-negative, got {position}")
    if position > MAX_POSITION:
        raise ValueError(f"Position cannot exceed {MAX_POSITION}")
    return position


class PositionStore:
    """Mapping of position to CardEntry with uniqueness checks on every write."""

    def __init__(self, entries: Mapping[int, CardEntry] | None = None) -> None:
        self._slots: dict[int, CardEntry] = {}
        self._instances: dict[str, int] = {}
        for position, entry in (entries or {}).items():
            self.place(position, entry)

    # ============= Reads =============

    def get(self, position: int) -> CardEntry | None:
        return self._slots.get(position)

    def __getitem__(self, position: int) -> CardEntry:
        return self._slots[position]

    def __contains__(self, position: object) -> bool:
        return position in self._slots

    def __len__(self) -> int:
        return len(self._slots)

    def __iter__(self) -> Iterator[int]:
        return iter(self.positions())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PositionStore):
            return NotImplemented
        return self._slots == other._slots

    def __repr__(self) -> str:
        return f"PositionStore({len(self)} entries, max={self.max_position()})"

    def positions(self) -> list[int]:
        """Occupied positions in ascending order."""
        return sorted(self._slots)

    def items(self) -> list[tuple[int, CardEntry]]:
        return [(position, self._slots[position]) for position in self.positions()]

    def as_dict(self) -> dict[int, CardEntry]:
        return dict(self._slots)

    def max_position(self) -> int | None:
        return max(self._slots) if self._slots else None

    def is_empty(self) -> bool:
        return not self._slots

    def position_of(self, instance_id: str) -> int | None:
        return self._instances.get(instance_id)

    def instance_ids(self) -> set[str]:
        return set(self._instances)

    def entries_in_range(self, start: int, end: int) -> list[tuple[int, CardEntry]]:
        """Occupied (position, entry) pairs with start <= position < end."""
        return [(position, entry) for position, entry in self.items() if start <= position < end]

    # ============= Writes =============

    def place(self, position: int, entry: CardEntry) -> None:
        """Put an entry into an empty slot. Raises PositionConflict if taken."""
        position = _check_position(position)
        occupant = self._slots.get(position)
        if occupant is not None:
            raise PositionConflict(
                position,
                f"holds {occupant.instance_id}, cannot also hold {entry.instance_id}",
            )
        existing = self._instances.get(entry.instance_id)
        if existing is not None:
            raise PositionConflict(
                position, f"instance {entry.instance_id} is already placed at {existing}"
            )
        self._slots[position] = entry
        self._instances[entry.instance_id] = position

    def remove(self, position: int) -> CardEntry | None:
        entry = self._slots.pop(position, None)
        if entry is not None:
            self._instances.pop(entry.instance_id, None)
        return entry

    def clear(self) -> int:
        count = len(self._slots)
        self._slots.clear()
        self._instances.clear()
        return count

    def copy(self) -> PositionStore:
        """Working copy sharing the same entry objects."""
        clone = PositionStore()
        clone._slots = dict(self._slots)
        clone._instances = dict(self._instances)
        return clone

    def replace_contents(self, other: PositionStore) -> None:
        """Commit a fully built working copy into this store."""
        self._slots = dict(other._slots)
        self._instances = dict(other._instances)

    def diff(self, previous: PositionStore) -> tuple[dict[int, CardEntry], list[int]]:
        """
        Compare this store against an earlier state.

        Returns:
            Tuple of (positions whose entry changed or appeared, positions that emptied)
        """
        upserts = {
            position: entry
            for position, entry in self._slots.items()
            if previous._slots.get(position) is not entry
        }
        deletes = sorted(position for position in previous._slots if position not in self._slots)
        return upserts, deletes


__all__ = ["PositionStore"]
