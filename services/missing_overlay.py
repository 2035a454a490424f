"""Display-only annotation marking placed card instances as missing from the collection."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from loguru import logger


class MissingOverlay:
    """Set of instance ids flagged as missing. Never touches the position store."""

    def __init__(self, instance_ids: Iterable[str] | None = None) -> None:
        self._missing: set[str] = set(instance_ids or ())

    def mark_missing(self, instance_id: str) -> None:
        self._missing.add(instance_id)

    def unmark(self, instance_id: str) -> None:
        self._missing.discard(instance_id)

    def toggle(self, instance_id: str) -> bool:
        """Flip the flag for one instance and return the new state."""
        if instance_id in self._missing:
            self._missing.discard(instance_id)
            return False
        self._missing.add(instance_id)
        return True

    def is_missing(self, instance_id: str) -> bool:
        return instance_id in self._missing

    def prune(self, live_instance_ids: Iterable[str]) -> int:
        """Drop ids whose entries are no longer placed. Returns how many were dropped."""
        stale = self._missing.difference(live_instance_ids)
        if stale:
            self._missing.difference_update(stale)
            logger.debug(f"Pruned {len(stale)} missing-card flags for removed entries")
        return len(stale)

    def clear(self) -> None:
        self._missing.clear()

    def missing_ids(self) -> list[str]:
        return sorted(self._missing)

    def __contains__(self, instance_id: object) -> bool:
        return instance_id in self._missing

    def __len__(self) -> int:
        return len(self._missing)

    def __iter__(self) -> Iterator[str]:
        return iter(self.missing_ids())


__all__ = ["MissingOverlay"]
