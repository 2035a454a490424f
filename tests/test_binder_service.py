"""Tests for BinderService workflows."""

from __future__ import annotations

from concurrent.futures import Future

import pytest
from test_helpers import make_card, make_cards

from repositories.binder_repository import InMemoryBinderRepository
from services.binder_service import BinderService
from services.settings_service import SettingsService
from utils.binder_errors import (
    BinderBusy,
    EmptyPosition,
    InvalidGridSize,
    LimitExceeded,
    PersistenceError,
)
from utils.binder_models import BinderSettings, Move


class FlakyBinderRepository(InMemoryBinderRepository):
    """In-memory store whose add calls can be switched to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_adds = False

    def add(self, binder_id, entries, start_position, options):
        if self.fail_adds:
            future: Future = Future()
            future.set_exception(ConnectionError("network down"))
            return future
        return super().add(binder_id, entries, start_position, options)


class FakeCardDataRepo:
    def __init__(self, sets: dict[str, list[dict]] | None = None) -> None:
        self.sets = sets or {}
        self.before_resolve = None
        self.requested: list[str] = []

    def fetch_set_cards_async(self, set_id: str) -> Future:
        self.requested.append(set_id)
        if self.before_resolve is not None:
            self.before_resolve()
        future: Future = Future()
        future.set_result(list(self.sets.get(set_id, [])))
        return future


@pytest.fixture
def card_data_repo():
    return FakeCardDataRepo(
        {
            "s1": make_cards(5, prefix="s1-"),
            "big": make_cards(40, prefix="b"),
            "zs": [make_card("z1", "1", name="Zubat"), make_card("a1", "2", name="Abra")],
        }
    )


@pytest.fixture
def binder_repo():
    return InMemoryBinderRepository()


@pytest.fixture
def service(binder_repo, card_data_repo, tmp_path):
    return BinderService(
        binder_repo=binder_repo,
        card_data_repo=card_data_repo,
        settings_service=SettingsService(settings_path=tmp_path / "config.json"),
    )


def _card_ids(service, binder_id="b1") -> dict[int, str]:
    engine = service.get_engine(binder_id)
    return {position: entry.card_id for position, entry in engine.store.items()}


# ============= Binders =============


def test_create_binder_uses_saved_preferences(service):
    service.settings_service.save_binder_settings(BinderSettings(grid_size="4x3"))
    engine = service.create_binder("b1")
    assert engine.settings.grid_size == "4x3"


def test_create_binder_rejects_unknown_grid(service):
    with pytest.raises(InvalidGridSize):
        service.create_binder("b1", settings={"gridSize": "10x10"})


def test_load_binder_restores_cards_and_missing_flags(service, binder_repo, card_data_repo):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(3))
    service.toggle_missing("b1", 1)

    fresh = BinderService(
        binder_repo=binder_repo,
        card_data_repo=card_data_repo,
        settings_service=service.settings_service,
    )
    engine = fresh.load_binder("b1")
    assert engine.store.positions() == [0, 1, 2]
    assert engine.overlay.is_missing(engine.store.get(1).instance_id)


def test_loaded_binder_starts_at_stored_version(service, binder_repo, card_data_repo):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(3))
    service.toggle_missing("b1", 1)

    fresh = BinderService(
        binder_repo=binder_repo,
        card_data_repo=card_data_repo,
        settings_service=service.settings_service,
    )
    engine = fresh.load_binder("b1")
    assert engine.version == binder_repo.load("b1").result().version == 2



def test_load_unknown_binder_returns_none(service):
    assert service.load_binder("missing") is None
    with pytest.raises(KeyError):
        service.get_engine("missing")


# ============= Card Operations =============


def test_card_operations_round_trip(service, binder_repo):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(3))
    service.move_cards("b1", [Move(2, 6)])
    service.move_card("b1", 0, 1)
    service.remove_card("b1", 6)

    assert _card_ids(service) == {0: "c1", 1: "c0"}
    stored = binder_repo.load("b1").result()
    assert sorted(stored.cards) == [0, 1]


def test_clear_binder(service):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(4))
    assert service.clear_binder("b1") == 4
    assert _card_ids(service) == {}


def test_toggle_missing_on_empty_slot(service):
    service.create_binder("b1")
    with pytest.raises(EmptyPosition):
        service.toggle_missing("b1", 4)


def test_sort_binder(service, binder_repo):
    service.create_binder("b1")
    cards = [make_card("z", name="Zubat"), make_card("a", name="Abra"), make_card("m", name="Mew")]
    service.add_cards("b1", cards)

    assert service.sort_binder("b1", "name") == 3

    assert _card_ids(service) == {0: "a", 1: "m", 2: "z"}
    stored = binder_repo.load("b1").result()
    assert stored.cards[0].card_id == "a"


def test_set_auto_sort_then_add(service):
    service.create_binder("b1")
    service.add_cards("b1", [make_card("m", name="Mew")])
    service.set_auto_sort("b1", True, "name")

    service.add_cards("b1", [make_card("a", name="Abra")])

    assert _card_ids(service) == {0: "a", 1: "m"}



def test_busy_binder_rejects_second_operation(service):
    service.create_binder("b1")
    lock = service._lock_for("b1")
    lock.acquire()
    try:
        assert service.is_busy("b1")
        with pytest.raises(BinderBusy):
            service.add_cards("b1", [make_card("a")])
    finally:
        lock.release()
    assert _card_ids(service) == {}


def test_expansion_flow(service):
    service.create_binder("b1", settings=BinderSettings(grid_size="2x2"))
    with pytest.raises(LimitExceeded):
        service.add_cards("b1", make_cards(6))

    options = service.expansion_options("b1", 6)
    pages = next(option for option in options if option.kind == "pages")
    service.apply_expansion("b1", pages)
    assert service.add_cards("b1", make_cards(6)).count == 6


# ============= Sets =============


def test_add_set_appends_cards(service, card_data_repo):
    service.create_binder("b1")
    service.add_cards("b1", [make_card("first")])
    result = service.add_set("b1", "s1")
    assert result.count == 5
    assert _card_ids(service)[0] == "first"
    assert card_data_repo.requested == ["s1"]


def test_add_set_replace_clears_existing_cards(service):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(7, prefix="old"))
    service.toggle_missing("b1", 0)

    result = service.add_set("b1", "s1", replace=True)

    assert result.count == 5
    assert _card_ids(service) == {index: f"s1-{index}" for index in range(5)}
    assert len(service.get_engine("b1").overlay) == 0


def test_add_set_replace_too_large_keeps_existing_cards(service):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(3))
    with pytest.raises(LimitExceeded):
        service.add_set("b1", "big", replace=True)
    assert len(_card_ids(service)) == 3


def test_add_set_replace_failure_keeps_existing_cards(card_data_repo, tmp_path):
    binder_repo = FlakyBinderRepository()
    service = BinderService(
        binder_repo=binder_repo,
        card_data_repo=card_data_repo,
        settings_service=SettingsService(settings_path=tmp_path / "config.json"),
    )
    service.create_binder("b1", settings=BinderSettings(page_count=3))
    service.add_cards("b1", make_cards(7))
    binder_repo.fail_adds = True

    with pytest.raises(PersistenceError):
        service.add_set("b1", "s1", replace=True)

    engine = service.get_engine("b1")
    stored = binder_repo.load("b1").result()
    assert len(engine.store) == 7
    assert len(stored.cards) == 7
    assert engine.settings.page_count == stored.settings.page_count == 3


def test_add_set_replace_is_one_persistence_write(service, binder_repo):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(7))
    before = binder_repo.load("b1").result().version

    service.add_set("b1", "s1", replace=True)

    assert binder_repo.load("b1").result().version == before + 1
    assert binder_repo.get_changelog("b1")[-1]["type"] == "cards_batch_added"


def test_add_set_keeps_set_order_and_turns_off_auto_sort(service, binder_repo):
    service.create_binder("b1", settings=BinderSettings(auto_sort=True, sort_by="name"))
    service.add_set("b1", "zs")

    assert _card_ids(service) == {0: "z1", 1: "a1"}
    assert service.get_engine("b1").settings.auto_sort is False
    assert binder_repo.load("b1").result().settings.auto_sort is False



def test_add_set_discarded_when_binder_changes_during_fetch(service, card_data_repo):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(2))
    card_data_repo.before_resolve = lambda: service.clear_binder("b1")

    assert service.add_set("b1", "s1") is None
    assert _card_ids(service) == {}


def test_add_set_with_reverse_holos_from_preferences(service):
    service.settings_service.save({"includeReverseHolos": True})
    service.create_binder("b1", settings=BinderSettings(grid_size="4x3"))
    result = service.add_set("b1", "s1")
    assert result.count == 10
    assert _card_ids(service)[1] == "s1-0_reverse"


def test_add_empty_set_returns_none(service):
    service.create_binder("b1")
    assert service.add_set("b1", "unknown") is None


def test_estimate_set_fit(service):
    service.create_binder("b1")
    estimate = service.estimate_set_fit("b1", 10, include_reverse_holos=True)
    assert estimate == {"needed": 16, "remaining": 9, "fits": False}
    assert service.estimate_set_fit("b1", 9)["fits"] is True


# ============= Display =============


def test_page_view_cover_spread(service):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(2))
    service.toggle_missing("b1", 1)

    view = service.page_view("b1", 0)

    assert view["title"] == "Cover - Page 1"
    assert view["left"]["slots"] == []
    slots = view["right"]["slots"]
    assert len(slots) == 9
    assert slots[0]["entry"].card_id == "c0"
    assert slots[1]["missing"] is True
    assert slots[2]["entry"] is None


def test_page_view_card_spread_positions(service):
    service.create_binder("b1", settings=BinderSettings(grid_size="2x2"))
    view = service.page_view("b1", 1)
    assert [slot["position"] for slot in view["left"]["slots"]] == [4, 5, 6, 7]
    assert [slot["position"] for slot in view["right"]["slots"]] == [8, 9, 10, 11]


def test_binder_summary(service):
    service.create_binder("b1")
    service.add_cards("b1", make_cards(4))
    summary = service.binder_summary("b1")
    assert summary["cards"] == 4
    assert summary["capacity"] == 9
    assert summary["remaining"] == 5
    assert summary["version"] == 1
