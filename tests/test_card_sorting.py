"""Tests for binder card sort keys."""

import pytest
from test_helpers import make_card

from utils.binder_models import CardEntry
from utils.card_sorting import is_valid_sort_option, parse_card_number, sort_entries


def _entries(*cards: dict) -> list[CardEntry]:
    return [CardEntry(card_data=card) for card in cards]


def _ids(entries: list[CardEntry]) -> list[str]:
    return [entry.card_id for entry in entries]


@pytest.mark.parametrize(
    "number,expected",
    [
        ("1", ("", 1, "")),
        ("001", ("", 1, "")),
        ("12a", ("", 12, "a")),
        ("SWSH001", ("swsh", 1, "")),
        ("TG-05", ("", 999999, "tg-05")),
        (None, ("", 999999, "zzz")),
    ],
)
def test_parse_card_number(number, expected):
    assert parse_card_number(number) == expected


def test_sort_by_set_then_number():
    entries = _entries(
        make_card("b2", "2", set={"name": "Base"}),
        make_card("j1", "1", set={"name": "Jungle"}),
        make_card("b10", "10", set={"name": "Base"}),
        make_card("b1", "1", set={"name": "Base"}),
    )
    assert _ids(sort_entries(entries, "set")) == ["b1", "b2", "b10", "j1"]


def test_sort_by_rarity_puts_unknown_rarities_last():
    entries = _entries(
        make_card("rare", "1", "Rare"),
        make_card("odd", "2", "Mystery"),
        make_card("common", "3", "Common"),
        make_card("holo", "4", "Rare Holo"),
    )
    assert _ids(sort_entries(entries, "rarity")) == ["common", "rare", "holo", "odd"]


def test_sort_by_type_uses_first_type():
    entries = _entries(
        make_card("water", "1", types=["Water"]),
        make_card("none", "2"),
        make_card("fire", "3", types=["Fire", "Water"]),
    )
    assert _ids(sort_entries(entries, "type")) == ["fire", "water", "none"]


def test_sort_by_name_ignores_case():
    entries = _entries(make_card("b", name="bulbasaur"), make_card("a", name="Abra"))
    assert _ids(sort_entries(entries, "name")) == ["a", "b"]


def test_custom_sort_keeps_order():
    entries = _entries(make_card("z"), make_card("a"))
    assert sort_entries(entries, "custom") == entries


def test_unknown_sort_option():
    assert not is_valid_sort_option("color")
    with pytest.raises(ValueError):
        sort_entries(_entries(make_card("a")), "color")
