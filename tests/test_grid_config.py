"""Tests for grid geometry lookup and slot addressing."""

import pytest

from utils.binder_errors import InvalidGridSize
from utils.grid_config import (
    available_grid_configs,
    global_position,
    is_known_grid_size,
    resolve_grid_config,
    slot_address,
)


@pytest.mark.parametrize(
    "grid_size,slots",
    [("1x1", 1), ("2x2", 4), ("3x3", 9), ("4x3", 12), ("4x4", 16)],
)
def test_resolve_known_grid_sizes(grid_size, slots):
    grid = resolve_grid_config(grid_size)
    assert grid.id == grid_size
    assert grid.slots_per_page == slots


def test_resolve_unknown_grid_falls_back_to_default():
    grid = resolve_grid_config("5x5")
    assert grid.id == "3x3"
    assert grid.slots_per_page == 9


def test_resolve_none_falls_back_to_default():
    assert resolve_grid_config(None).id == "3x3"


def test_resolve_unknown_grid_strict_raises():
    with pytest.raises(InvalidGridSize) as excinfo:
        resolve_grid_config("9x9", strict=True)
    assert excinfo.value.grid_size == "9x9"
    assert excinfo.value.fallback == "3x3"


def test_wide_grid_has_four_columns_three_rows():
    grid = resolve_grid_config("4x3")
    assert (grid.columns, grid.rows) == (4, 3)
    assert grid.label == "Wide"


def test_is_known_grid_size():
    assert is_known_grid_size("2x2")
    assert not is_known_grid_size("2x3")


def test_available_grid_configs_sorted_by_capacity():
    slots = [grid.slots_per_page for grid in available_grid_configs()]
    assert slots == sorted(slots)
    assert len(slots) == 5


def test_slot_address_for_position_in_second_page():
    grid = resolve_grid_config("3x3")
    address = slot_address(13, grid)
    assert address.physical_index == 1
    assert address.slot_in_page == 4
    assert (address.row, address.column) == (1, 1)


def test_global_position_inverts_slot_address():
    grid = resolve_grid_config("4x3")
    address = slot_address(29, grid)
    assert global_position(address.physical_index, address.slot_in_page, grid) == 29


def test_global_position_rejects_slot_outside_page():
    with pytest.raises(ValueError):
        global_position(0, 9, resolve_grid_config("3x3"))
