"""Tests for set card list access."""

import json

import pytest
from test_helpers import make_card

from repositories.card_data_repository import (
    CardDataRepository,
    estimate_reverse_holo_count,
    get_card_data_repository,
    reset_card_data_repository,
    sort_set_cards,
)


@pytest.fixture
def cards_dir(tmp_path):
    path = tmp_path / "cards"
    path.mkdir()
    return path


@pytest.fixture
def card_data_repo(cards_dir):
    repo = CardDataRepository(cards_dir=cards_dir)
    yield repo
    repo.close()


def _write_set(cards_dir, set_id, cards):
    (cards_dir / f"{set_id}.json").write_text(json.dumps(cards), encoding="utf-8")


def test_get_set_cards_sorted_by_number(card_data_repo, cards_dir):
    _write_set(
        cards_dir,
        "base1",
        [make_card("base1-10", "10"), make_card("base1-2", "2"), make_card("base1-1", "1")],
    )
    cards = card_data_repo.get_set_cards("base1")
    assert [card["number"] for card in cards] == ["1", "2", "10"]


def test_get_set_cards_accepts_wrapped_payload(card_data_repo, cards_dir):
    (cards_dir / "sv1.json").write_text(
        json.dumps({"data": [make_card("sv1-1", "1"), {"name": "no id"}]}), encoding="utf-8"
    )
    assert [card["id"] for card in card_data_repo.get_set_cards("sv1")] == ["sv1-1"]


def test_get_set_cards_missing_file_returns_empty(card_data_repo):
    assert card_data_repo.get_set_cards("unknown") == []


def test_get_set_cards_invalid_json_returns_empty(card_data_repo, cards_dir):
    (cards_dir / "bad.json").write_text("{not json", encoding="utf-8")
    assert card_data_repo.get_set_cards("bad") == []


def test_get_set_cards_uses_cache(card_data_repo, cards_dir):
    _write_set(cards_dir, "s", [make_card("s-1", "1")])
    card_data_repo.get_set_cards("s")
    (cards_dir / "s.json").unlink()
    assert len(card_data_repo.get_set_cards("s")) == 1
    card_data_repo.clear_cache()
    assert card_data_repo.get_set_cards("s") == []


def test_fetch_set_cards_async(card_data_repo, cards_dir):
    _write_set(cards_dir, "s", [make_card("s-1", "1")])
    future = card_data_repo.fetch_set_cards_async("s")
    assert future.result(timeout=5)[0]["id"] == "s-1"


def test_sort_places_reverse_holo_after_regular():
    cards = [
        make_card("x-2", "2"),
        make_card("x-1_reverse", "1", reverseHolo=True),
        make_card("x-1", "1"),
        make_card("x-TG1", "TG1"),
    ]
    ordered = [card["id"] for card in sort_set_cards(cards)]
    assert ordered == ["x-1", "x-1_reverse", "x-2", "x-TG1"]


def test_estimate_reverse_holo_count():
    assert estimate_reverse_holo_count(100) == 60
    assert estimate_reverse_holo_count(165, copies=2) == 198
    assert estimate_reverse_holo_count(0) == 0


def test_set_card_stats(card_data_repo, cards_dir):
    _write_set(
        cards_dir,
        "s",
        [
            make_card("s-1", "1", "Common", set={"printedTotal": 10}),
            make_card("s-2", "2", "Rare Holo"),
            make_card("s-3", "3", "Illustration Rare"),
        ],
    )
    stats = card_data_repo.set_card_stats("s")
    assert stats == {"total": 3, "reversible": 2, "estimated_reverse": 6}


def test_get_card_data_repository_singleton():
    first = get_card_data_repository()
    assert get_card_data_repository() is first
    reset_card_data_repository()
    assert get_card_data_repository() is not first
