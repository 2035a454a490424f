"""
Binder Service - Workflow layer over the placement engine.

Keeps one engine per open binder, serializes operations per binder and handles
the longer "add a whole set" flow, which fetches card data before committing.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from loguru import logger

from repositories.binder_repository import BinderPersistence, InMemoryBinderRepository
from repositories.card_data_repository import (
    CardDataRepository,
    estimate_reverse_holo_count,
    get_card_data_repository,
)
from repositories.position_store import PositionStore
from services import page_layout
from services.missing_overlay import MissingOverlay
from services.placement_engine import PlacementEngine
from services.settings_service import SettingsService, get_settings_service
from utils.binder_errors import (
    BinderBusy,
    BinderError,
    LimitExceeded,
    PersistenceError,
    StaleOperation,
)
from utils.binder_models import (
    AddResult,
    BinderDocument,
    BinderSettings,
    CardEntry,
    ExpansionOption,
    Move,
)
from utils.constants import DEFAULT_CLEAR_REASON, PERSISTENCE_TIMEOUT_SECONDS


class BinderService:
    """Business logic for binder workflows, decoupled from any UI."""

    def __init__(
        self,
        *,
        binder_repo: BinderPersistence | None = None,
        card_data_repo: CardDataRepository | None = None,
        settings_service: SettingsService | None = None,
        timeout: float = PERSISTENCE_TIMEOUT_SECONDS,
    ) -> None:
        self.binder_repo = binder_repo or InMemoryBinderRepository()
        self.card_data_repo = card_data_repo or get_card_data_repository()
        self.settings_service = settings_service or get_settings_service()
        self._timeout = timeout
        self._engines: dict[str, PlacementEngine] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------ locking ------------------------------------------------------------------
    def _lock_for(self, binder_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(binder_id, threading.Lock())

    @contextmanager
    def _operation(self, binder_id: str) -> Iterator[PlacementEngine]:
        lock = self._lock_for(binder_id)
        if not lock.acquire(blocking=False):
            raise BinderBusy(f"Binder {binder_id} is busy with another operation")
        try:
            yield self.get_engine(binder_id)
        finally:
            lock.release()

    def is_busy(self, binder_id: str) -> bool:
        return self._lock_for(binder_id).locked()

    # ------------------------------------------------------------------ binders ------------------------------------------------------------------
    def _engine_from_document(self, document: BinderDocument) -> PlacementEngine:
        store = PositionStore(document.cards)
        overlay = MissingOverlay(document.missing)
        overlay.prune(store.instance_ids())
        return PlacementEngine(
            document.binder_id,
            store=store,
            settings=document.settings,
            overlay=overlay,
            persistence=self.binder_repo,
            owner_id=document.owner_id,
            version=document.version,
            persistence_timeout=self._timeout,
        )

    def create_binder(
        self,
        binder_id: str | None = None,
        *,
        owner_id: str = "local_user",
        settings: BinderSettings | dict[str, Any] | None = None,
    ) -> PlacementEngine:
        """Create an empty binder, using saved preferences when no settings are given."""
        if isinstance(settings, dict):
            settings = self.settings_service.build_binder_settings(settings, strict=True)
        elif settings is None:
            settings = self.settings_service.load_binder_settings()
        document = self.binder_repo.create(binder_id, owner_id, settings).result(
            timeout=self._timeout
        )
        engine = self._engine_from_document(document)
        self._engines[engine.binder_id] = engine
        return engine

    def load_binder(self, binder_id: str) -> PlacementEngine | None:
        """Load a binder from the backing store, replacing any cached engine."""
        try:
            document = self.binder_repo.load(binder_id).result(timeout=self._timeout)
        except BinderError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to load binder {binder_id}: {exc}") from exc
        if document is None:
            logger.warning(f"Binder {binder_id} not found")
            return None
        engine = self._engine_from_document(document)
        self._engines[binder_id] = engine
        logger.info(f"Loaded binder {binder_id} with {len(engine.store)} cards")
        return engine

    def get_engine(self, binder_id: str) -> PlacementEngine:
        engine = self._engines.get(binder_id) or self.load_binder(binder_id)
        if engine is None:
            raise KeyError(binder_id)
        return engine

    def close_binder(self, binder_id: str) -> None:
        self._engines.pop(binder_id, None)

    # ------------------------------------------------------------------ cards ------------------------------------------------------------------
    def add_cards(
        self,
        binder_id: str,
        cards: Sequence[dict[str, Any]],
        start_position: int | None = None,
        **options: Any,
    ) -> AddResult:
        with self._operation(binder_id) as engine:
            return engine.add_cards(cards, start_position, **options)

    def move_cards(self, binder_id: str, moves: Sequence[Move | tuple[int, int]]) -> list[Move]:
        with self._operation(binder_id) as engine:
            return engine.move_cards(moves)

    def move_card(
        self, binder_id: str, from_position: int, to_position: int, mode: str = "swap"
    ) -> list[Move]:
        with self._operation(binder_id) as engine:
            return engine.move_card(from_position, to_position, mode)

    def remove_card(self, binder_id: str, position: int) -> CardEntry | None:
        with self._operation(binder_id) as engine:
            return engine.remove_card(position)

    def clear_binder(self, binder_id: str, reason: str = DEFAULT_CLEAR_REASON) -> int:
        with self._operation(binder_id) as engine:
            return engine.clear_all(reason)

    def toggle_missing(self, binder_id: str, position: int) -> bool:
        """Flip the missing flag for the card at ``position`` and return the new state."""
        with self._operation(binder_id) as engine:
            return engine.toggle_missing(position)

    # ------------------------------------------------------------------ pages ------------------------------------------------------------------
    def expansion_options(self, binder_id: str, needed_slots: int) -> list[ExpansionOption]:
        return self.get_engine(binder_id).compute_expansion_options(needed_slots)

    def apply_expansion(self, binder_id: str, option: ExpansionOption) -> BinderSettings:
        with self._operation(binder_id) as engine:
            return engine.apply_expansion(option)

    def add_pages(self, binder_id: str, count: int = 1) -> BinderSettings:
        with self._operation(binder_id) as engine:
            return engine.add_pages(count)

    def remove_last_page(self, binder_id: str) -> BinderSettings:
        with self._operation(binder_id) as engine:
            return engine.remove_last_page()

    def set_grid_size(self, binder_id: str, grid_size: str) -> BinderSettings:
        with self._operation(binder_id) as engine:
            return engine.set_grid_size(grid_size)

    def compact(self, binder_id: str, scope: str = "binder", page_indices: Sequence[int] = ()) -> int:
        with self._operation(binder_id) as engine:
            return engine.compact(scope, page_indices)

    def sort_binder(self, binder_id: str, sort_by: str | None = None) -> int:
        with self._operation(binder_id) as engine:
            return engine.sort_cards(sort_by)

    def set_auto_sort(
        self, binder_id: str, enabled: bool, sort_by: str | None = None
    ) -> BinderSettings:
        with self._operation(binder_id) as engine:
            return engine.set_auto_sort(enabled, sort_by)

    # ------------------------------------------------------------------ sets ------------------------------------------------------------------
    def add_set(
        self,
        binder_id: str,
        set_id: str,
        *,
        replace: bool = False,
        start_position: int | None = None,
        include_reverse_holos: bool | None = None,
        reverse_holo_placement: str = "interleaved",
        reverse_holo_copies: int = 1,
    ) -> AddResult | None:
        """
        Fetch every card of a set and add them as one batch.

        Args:
            binder_id: Target binder
            set_id: Set whose cards are fetched from the card data repository
            replace: Replace every card in the binder, filling it from position 0
            start_position: Insert position when not replacing
            include_reverse_holos: Add reverse holos; None uses the saved preference
            reverse_holo_placement: "interleaved", "first" or "last"
            reverse_holo_copies: Reverse holo copies per eligible card

        Returns:
            AddResult, or None when the set was empty or the binder changed while
            the set was being fetched
        """
        engine = self.get_engine(binder_id)
        expected_version = engine.version
        if include_reverse_holos is None:
            include_reverse_holos = self.settings_service.include_reverse_holos()

        cards = self.card_data_repo.fetch_set_cards_async(set_id).result(timeout=self._timeout)
        if not cards:
            logger.warning(f"Set {set_id} has no cards to add")
            return None

        with self._operation(binder_id) as engine:
            try:
                engine.ensure_version(expected_version)
            except StaleOperation as exc:
                logger.info(f"Discarding set {set_id} for binder {binder_id}: {exc}")
                return None

            options = {
                "include_reverse_holos": include_reverse_holos,
                "reverse_holo_placement": reverse_holo_placement,
                "reverse_holo_copies": reverse_holo_copies,
            }
            batch_size = engine.count_new_entries(
                cards,
                include_reverse_holos=include_reverse_holos,
                reverse_holo_copies=reverse_holo_copies,
            )
            try:
                engine.check_capacity(batch_size, is_replacement=replace)
            except LimitExceeded:
                logger.warning(f"Set {set_id} ({batch_size} cards) does not fit binder {binder_id}")
                raise

            if not replace:
                return engine.add_cards(cards, start_position, preserve_order=True, **options)

            # The replacement add empties the store itself, in the same persistence call
            replaced = len(engine.store)
            result = engine.add_cards(cards, None, is_replacement=True, **options)
            logger.info(
                f"Replaced {replaced} cards in binder {binder_id} with {result.count} from set {set_id}"
            )
            return result

    def estimate_set_fit(
        self,
        binder_id: str,
        printed_total: int,
        *,
        include_reverse_holos: bool = False,
        reverse_holo_copies: int = 1,
        replace: bool = False,
    ) -> dict[str, Any]:
        """
        Warn before fetching a set whether it is likely to fit.

        The reverse holo share is estimated from the printed total, so the
        result is a warning aid, not a guarantee.
        """
        engine = self.get_engine(binder_id)
        needed = printed_total
        if include_reverse_holos:
            needed += estimate_reverse_holo_count(printed_total, reverse_holo_copies)
        remaining = engine.capacity() if replace else engine.remaining_slots()
        fits = needed <= remaining
        if not fits:
            logger.warning(
                f"Set of about {needed} cards may not fit binder {binder_id} ({remaining} slots free)"
            )
        return {"needed": needed, "remaining": remaining, "fits": fits}

    # ------------------------------------------------------------------ display ------------------------------------------------------------------
    def page_view(self, binder_id: str, logical_index: int) -> dict[str, Any]:
        """
        Everything needed to draw one logical page.

        Returns:
            Dictionary with the spread, the display text and, per side, the slot
            entries with their missing flags. Cover sides have no slots.
        """
        engine = self.get_engine(binder_id)
        spread = page_layout.page_config(logical_index)
        spp = engine.grid.slots_per_page

        def side_view(side) -> dict[str, Any]:
            if side.is_cover:
                return {"side": side, "slots": []}
            entries = page_layout.slice_for_physical_page(engine.store, side.physical_index, spp)
            return {
                "side": side,
                "slots": [
                    {
                        "position": side.physical_index * spp + offset,
                        "entry": entry,
                        "missing": entry is not None and engine.overlay.is_missing(entry.instance_id),
                    }
                    for offset, entry in enumerate(entries)
                ],
            }

        return {
            "spread": spread,
            "title": page_layout.page_display_text(logical_index),
            "total_pages": engine.total_pages(),
            "left": side_view(spread.left),
            "right": side_view(spread.right),
        }

    def binder_summary(self, binder_id: str) -> dict[str, Any]:
        engine = self.get_engine(binder_id)
        return {
            "binder_id": binder_id,
            "grid_size": engine.settings.grid_size,
            "cards": len(engine.store),
            "missing": len(engine.overlay),
            "total_pages": engine.total_pages(),
            "capacity": engine.capacity(),
            "remaining": engine.remaining_slots(),
            "version": engine.version,
        }


_default_service: BinderService | None = None


def get_binder_service() -> BinderService:
    """Get the default binder service instance."""
    global _default_service
    if _default_service is None:
        from repositories.binder_repository import get_binder_repository

        _default_service = BinderService(binder_repo=get_binder_repository())
    return _default_service


def reset_binder_service() -> None:
    """Reset the global binder service instance."""
    global _default_service
    _default_service = None


__all__ = ["BinderService", "get_binder_service", "reset_binder_service"]
