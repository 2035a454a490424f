"""
Page layout calculations for binders.

A binder opens on a cover next to physical card page 0. Every logical page after
that shows two physical card pages side by side. Everything here is pure and
synchronous.
"""

from __future__ import annotations

import math

from repositories.position_store import PositionStore
from utils.binder_models import BinderSettings, CardEntry, PageSide, PageSpread
from utils.grid_config import GridConfig


def physical_card_page_count(stored_page_count: int) -> int:
    """Number of physical card pages behind a logical page count."""
    if stored_page_count <= 1:
        return 1
    return 1 + (stored_page_count - 1) * 2


def required_physical_pages(max_occupied_position: int | None, slots_per_page: int) -> int:
    if max_occupied_position is None:
        return 0
    return math.ceil((max_occupied_position + 1) / slots_per_page)


def required_logical_pages(physical_pages: int) -> int:
    if physical_pages <= 1:
        return 1
    return 1 + math.ceil((physical_pages - 1) / 2)


def required_pages_for(store: PositionStore, grid: GridConfig) -> int:
    """Logical pages the current occupancy needs on its own."""
    physical = required_physical_pages(store.max_position(), grid.slots_per_page)
    return required_logical_pages(physical)


def total_logical_pages(store: PositionStore, grid: GridConfig, settings: BinderSettings) -> int:
    """Pages used for capacity decisions: occupancy, stored hint and minimum combined."""
    return max(required_pages_for(store, grid), settings.page_count, settings.min_pages, 1)


def capacity(total_pages: int, slots_per_page: int) -> int:
    return physical_card_page_count(total_pages) * slots_per_page


def page_config(logical_index: int) -> PageSpread:
    """Map a logical page to the physical pages shown on its left and right."""
    if logical_index < 0:
        raise ValueError(f"Logical page index must be non-negative, got {logical_index}")
    if logical_index == 0:
        return PageSpread(
            logical_index=0,
            left=PageSide(kind="cover"),
            right=PageSide(kind="cards", physical_index=0, page_number=1),
        )
    left_index = 2 * logical_index - 1
    right_index = 2 * logical_index
    return PageSpread(
        logical_index=logical_index,
        left=PageSide(kind="cards", physical_index=left_index, page_number=left_index + 1),
        right=PageSide(kind="cards", physical_index=right_index, page_number=right_index + 1),
    )


def slice_for_physical_page(
    store: PositionStore, physical_index: int, slots_per_page: int
) -> list[CardEntry | None]:
    """Entries for one physical page, with None marking empty slots."""
    start = physical_index * slots_per_page
    return [store.get(start + offset) for offset in range(slots_per_page)]


def logical_page_positions(logical_index: int, slots_per_page: int) -> range:
    """Global positions covered by every physical page of one logical page."""
    spread = page_config(logical_index)
    first = spread.right if spread.left.is_cover else spread.left
    last = spread.right
    return range(first.physical_index * slots_per_page, (last.physical_index + 1) * slots_per_page)


def single_page_count(store: PositionStore, grid: GridConfig) -> int:
    """Cover plus every physical page in use, for one-page-at-a-time viewing."""
    return 1 + required_physical_pages(store.max_position(), grid.slots_per_page)


def page_display_text(logical_index: int) -> str:
    spread = page_config(logical_index)
    if spread.left.is_cover:
        return "Cover - Page 1"
    return f"Pages {spread.left.page_number}-{spread.right.page_number}"


__all__ = [
    "capacity",
    "logical_page_positions",
    "page_config",
    "page_display_text",
    "physical_card_page_count",
    "required_logical_pages",
    "required_pages_for",
    "required_physical_pages",
    "single_page_count",
    "slice_for_physical_page",
    "total_logical_pages",
]
