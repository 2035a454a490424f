"""Grid geometry lookup for binder pages."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from utils.binder_errors import InvalidGridSize
from utils.constants import DEFAULT_GRID_SIZE, GRID_CONFIGS, GRID_LABELS


@dataclass(frozen=True)
class GridConfig:
    id: str
    columns: int
    rows: int

    @property
    def slots_per_page(self) -> int:
        return self.columns * self.rows

    @property
    def label(self) -> str:
        return GRID_LABELS.get(self.id, self.id)


@dataclass(frozen=True)
class SlotAddress:
    position: int
    physical_index: int
    slot_in_page: int
    row: int
    column: int


def _build(grid_size: str) -> GridConfig:
    columns, rows = GRID_CONFIGS[grid_size]
    return GridConfig(id=grid_size, columns=columns, rows=rows)


def is_known_grid_size(grid_size: str | None) -> bool:
    return grid_size in GRID_CONFIGS


def resolve_grid_config(grid_size: str | None, *, strict: bool = False) -> GridConfig:
    """
    Look up the geometry for a grid size identifier.

    Args:
        grid_size: Identifier such as "3x3" or "4x3"
        strict: Raise InvalidGridSize instead of falling back to the default

    Returns:
        The matching GridConfig, or the default geometry for unknown identifiers
    """
    if is_known_grid_size(grid_size):
        return _build(grid_size)
    if strict:
        raise InvalidGridSize(str(grid_size), DEFAULT_GRID_SIZE)
    logger.warning(f"Unknown grid size {grid_size!r}; falling back to {DEFAULT_GRID_SIZE}")
    return _build(DEFAULT_GRID_SIZE)


def available_grid_configs() -> list[GridConfig]:
    """Return every known geometry, smallest page first."""
    return sorted((_build(size) for size in GRID_CONFIGS), key=lambda grid: grid.slots_per_page)


def slot_address(position: int, grid: GridConfig) -> SlotAddress:
    """Convert a global position into its physical page, slot, row and column."""
    if position < 0:
        raise ValueError(f"Position must be non-negative, got {position}")
    physical_index, slot_in_page = divmod(position, grid.slots_per_page)
    row, column = divmod(slot_in_page, grid.columns)
    return SlotAddress(
        position=position,
        physical_index=physical_index,
        slot_in_page=slot_in_page,
        row=row,
        column=column,
    )


def global_position(physical_index: int, slot_in_page: int, grid: GridConfig) -> int:
    if not 0 <= slot_in_page < grid.slots_per_page:
        raise ValueError(f"Slot {slot_in_page} is outside a {grid.id} page")
    return physical_index * grid.slots_per_page + slot_in_page


__all__ = [
    "GridConfig",
    "SlotAddress",
    "available_grid_configs",
    "global_position",
    "is_known_grid_size",
    "resolve_grid_config",
    "slot_address",
]
