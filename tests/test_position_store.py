"""Tests for the sparse position store."""

import pytest
from test_helpers import make_card

from repositories.position_store import PositionStore
from utils.binder_errors import PositionConflict
from utils.binder_models import CardEntry


def _entry(card_id: str = "c1") -> CardEntry:
    return CardEntry(card_data=make_card(card_id))


def test_place_and_get():
    store = PositionStore()
    entry = _entry()
    store.place(4, entry)
    assert store.get(4) is entry
    assert 4 in store
    assert len(store) == 1
    assert store.position_of(entry.instance_id) == 4


def test_place_into_occupied_slot_raises_conflict():
    store = PositionStore({0: _entry("a")})
    with pytest.raises(PositionConflict) as excinfo:
        store.place(0, _entry("b"))
    assert excinfo.value.position == 0
    assert store.get(0).card_id == "a"


def test_same_instance_cannot_be_placed_twice():
    store = PositionStore()
    entry = _entry()
    store.place(0, entry)
    with pytest.raises(PositionConflict):
        store.place(1, entry)


@pytest.mark.parametrize("position", [-1, 10001])
def test_place_rejects_out_of_range_positions(position):
    with pytest.raises(ValueError):
        PositionStore().place(position, _entry())


def test_place_rejects_non_integer_positions():
    with pytest.raises(TypeError):
        PositionStore().place("3", _entry())


def test_remove_leaves_gap():
    store = PositionStore({0: _entry("a"), 1: _entry("b"), 2: _entry("c")})
    removed = store.remove(1)
    assert removed.card_id == "b"
    assert store.positions() == [0, 2]
    assert store.get(1) is None


def test_remove_empty_position_returns_none():
    assert PositionStore().remove(5) is None


def test_max_position_and_empty():
    store = PositionStore()
    assert store.max_position() is None
    assert store.is_empty()
    store.place(17, _entry())
    assert store.max_position() == 17


def test_copy_is_independent():
    store = PositionStore({0: _entry("a")})
    working = store.copy()
    working.place(1, _entry("b"))
    assert len(store) == 1
    assert len(working) == 2


def test_replace_contents_commits_working_copy():
    store = PositionStore({0: _entry("a")})
    working = store.copy()
    working.place(3, working.remove(0))
    store.replace_contents(working)
    assert store.positions() == [3]


def test_entries_in_range():
    store = PositionStore({0: _entry("a"), 5: _entry("b"), 9: _entry("c")})
    assert [position for position, _ in store.entries_in_range(0, 9)] == [0, 5]


def test_diff_reports_moved_and_emptied_positions():
    a, b = _entry("a"), _entry("b")
    previous = PositionStore({0: a, 1: b})
    current = previous.copy()
    current.place(2, current.remove(1))
    upserts, deletes = current.diff(previous)
    assert upserts == {2: b}
    assert deletes == [1]
