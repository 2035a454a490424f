"""Root-level pytest fixtures for all tests.

This module provides fixtures that are available to all tests in the project.
"""

from concurrent.futures import Future

import pytest
from test_helpers import make_cards, reset_all_globals

from repositories.binder_repository import InMemoryBinderRepository
from repositories.position_store import PositionStore
from services.missing_overlay import MissingOverlay
from services.placement_engine import PlacementEngine
from utils.binder_models import BinderSettings, CardEntry


@pytest.fixture(autouse=True)
def reset_global_state():
    """Automatically reset all global service and repository instances after each test.

    This fixture ensures test isolation by resetting all singleton instances
    to None after each test completes, preventing state leakage between tests.
    """
    yield
    reset_all_globals()


class RecordingPersistence(InMemoryBinderRepository):
    """In-memory binder store that records every call and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, tuple]] = []
        self.fail_with: Exception | None = None

    def _record(self, name: str, *args) -> Future | None:
        self.calls.append((name, args))
        if self.fail_with is None:
            return None
        future: Future = Future()
        future.set_exception(self.fail_with)
        return future

    def add(self, binder_id, entries, start_position, options):
        failed = self._record("add", binder_id, entries, start_position, options)
        return failed or super().add(binder_id, entries, start_position, options)

    def move(self, binder_id, moves):
        return self._record("move", binder_id, moves) or super().move(binder_id, moves)

    def remove(self, binder_id, positions):
        failed = self._record("remove", binder_id, positions)
        return failed or super().remove(binder_id, positions)

    def clear(self, binder_id, reason):
        return self._record("clear", binder_id, reason) or super().clear(binder_id, reason)

    def update_settings(self, binder_id, settings):
        failed = self._record("update_settings", binder_id, settings)
        return failed or super().update_settings(binder_id, settings)

    def relayout(self, binder_id, cards, settings):
        failed = self._record("relayout", binder_id, cards, settings)
        return failed or super().relayout(binder_id, cards, settings)

    def save_missing(self, binder_id, instance_ids):
        ids = list(instance_ids)
        return self._record("save_missing", binder_id, ids) or super().save_missing(binder_id, ids)

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


@pytest.fixture
def persistence() -> RecordingPersistence:
    return RecordingPersistence()


@pytest.fixture
def make_engine(persistence):
    """Build a PlacementEngine over a store filled at the given positions."""

    def _make(positions=(), settings: BinderSettings | None = None, **kwargs) -> PlacementEngine:
        cards = make_cards(len(positions), prefix="seed")
        store = PositionStore(
            {position: CardEntry(card_data=card) for position, card in zip(positions, cards)}
        )
        settings = settings or BinderSettings()
        persistence.relayout("binder-1", store.as_dict(), settings).result()
        persistence.calls.clear()
        return PlacementEngine(
            "binder-1",
            store=store,
            settings=settings,
            overlay=MissingOverlay(),
            persistence=persistence,
            **kwargs,
        )

    return _make
