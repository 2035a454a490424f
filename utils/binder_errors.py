"""Error kinds raised by the binder placement engine and its collaborators."""

from __future__ import annotations


class BinderError(Exception):
    """Base class for binder layout and placement failures."""


class InvalidGridSize(BinderError, ValueError):
    """Raised when a grid size identifier is not recognised and strict lookup was requested."""

    def __init__(self, grid_size: str, fallback: str) -> None:
        super().__init__(f"Unknown grid size '{grid_size}' (default is '{fallback}')")
        self.grid_size = grid_size
        self.fallback = fallback


class LimitExceeded(BinderError):
    """Raised when a mutation would place more cards than the binder can hold."""

    def __init__(self, requested: int, remaining: int, capacity: int, reason: str = "") -> None:
        message = (
            reason
            or f"Cannot add {requested} cards: only {remaining} slots remaining "
            f"({capacity - remaining}/{capacity} used)"
        )
        super().__init__(message)
        self.requested = requested
        self.remaining = remaining
        self.capacity = capacity


class PositionConflict(BinderError):
    """Two entries resolved to the same slot. Always an engine defect."""

    def __init__(self, position: int, detail: str = "") -> None:
        message = f"Position {position} is already occupied"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.position = position


class StaleOperation(BinderError):
    """A pending operation was superseded by a conflicting commit."""

    def __init__(self, binder_id: str, expected_version: int, actual_version: int) -> None:
        super().__init__(
            f"Binder {binder_id} changed while the operation was pending "
            f"(version {expected_version} -> {actual_version})"
        )
        self.binder_id = binder_id
        self.expected_version = expected_version
        self.actual_version = actual_version


class InvalidMove(BinderError, ValueError):
    """Raised when a requested move cannot be applied to the current layout."""


class EmptyPosition(BinderError, LookupError):
    """Raised when an operation needs a card at a position that holds none."""

    def __init__(self, position: int) -> None:
        super().__init__(f"No card at position {position}")
        self.position = position


class PageLimitError(BinderError):
    """Raised when adding or removing pages would break the page bounds."""


class BinderBusy(BinderError):
    """Raised when an operation starts while another one is still committing."""


class PersistenceError(BinderError):
    """Raised when the backing store rejects or fails a write."""


__all__ = [
    "BinderError",
    "BinderBusy",
    "EmptyPosition",
    "InvalidGridSize",
    "InvalidMove",
    "LimitExceeded",
    "PageLimitError",
    "PersistenceError",
    "PositionConflict",
    "StaleOperation",
]
