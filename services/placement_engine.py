"""
Placement Engine - Card mutations for one binder.

Every operation follows the same shape:
1. validate the request against the current layout and capacity
2. build the complete target layout on a working copy of the position store
3. issue exactly one persistence call for the whole batch
4. commit the working copy to the live store and bump the binder version

If any step before the commit fails, the live store is left untouched.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from concurrent.futures import Future
from typing import Any

from loguru import logger

from repositories.binder_repository import BinderPersistence, InMemoryBinderRepository
from repositories.position_store import PositionStore
from services import page_layout
from services.missing_overlay import MissingOverlay
from utils.binder_errors import (
    BinderError,
    EmptyPosition,
    InvalidMove,
    LimitExceeded,
    PageLimitError,
    PersistenceError,
    PositionConflict,
    StaleOperation,
)
from utils.binder_models import (
    AddOptions,
    AddResult,
    BinderSettings,
    CardEntry,
    ExpansionOption,
    Move,
    PersistResult,
)
from utils.card_sorting import is_valid_sort_option, sort_entries
from utils.constants import (
    COMPLETE_SET_MIN_CARDS,
    DEFAULT_CARD_CONDITION,
    DEFAULT_CLEAR_REASON,
    DEFAULT_SORT_BY,
    MAX_POSITION,
    PERSISTENCE_TIMEOUT_SECONDS,
    REVERSE_HOLO_ELIGIBLE_RARITIES,
    REVERSE_HOLO_ID_SUFFIX,
    REVERSE_HOLO_PLACEMENTS,
)
from utils.grid_config import (
    GridConfig,
    available_grid_configs,
    resolve_grid_config,
)


def is_reverse_holo_eligible(card: dict[str, Any]) -> bool:
    if card.get("reverseHolo"):
        return False
    return card.get("rarity") in REVERSE_HOLO_ELIGIBLE_RARITIES


def order_moves(moves: Iterable[Move]) -> list[Move]:
    """
    Order a batch so no slot is ever claimed twice when applied one by one.

    Moves toward higher positions go first, by descending target. Moves toward
    lower positions follow, by ascending target.
    """
    moves = list(moves)
    upward = sorted((m for m in moves if m.direction > 0), key=lambda m: m.to_position, reverse=True)
    downward = sorted((m for m in moves if m.direction < 0), key=lambda m: m.to_position)
    return upward + downward


class PlacementEngine:
    """Add, move, remove and clear cards in one binder while enforcing capacity."""

    def __init__(
        self,
        binder_id: str,
        store: PositionStore | None = None,
        settings: BinderSettings | None = None,
        overlay: MissingOverlay | None = None,
        persistence: BinderPersistence | None = None,
        *,
        owner_id: str = "local_user",
        version: int = 0,
        persistence_timeout: float = PERSISTENCE_TIMEOUT_SECONDS,
    ) -> None:
        self.binder_id = binder_id
        self.store = store if store is not None else PositionStore()
        self.settings = settings or BinderSettings()
        self.overlay = overlay if overlay is not None else MissingOverlay()
        self.persistence = persistence or InMemoryBinderRepository()
        self.owner_id = owner_id
        self._version = version
        self._timeout = persistence_timeout

    # ============= Layout Queries =============

    @property
    def version(self) -> int:
        return self._version

    @property
    def grid(self) -> GridConfig:
        return resolve_grid_config(self.settings.grid_size)

    def total_pages(self) -> int:
        return page_layout.total_logical_pages(self.store, self.grid, self.settings)

    def capacity(self) -> int:
        return page_layout.capacity(self.total_pages(), self.grid.slots_per_page)

    def remaining_slots(self) -> int:
        return max(0, self.capacity() - len(self.store))

    def ensure_version(self, expected_version: int) -> None:
        """Raise StaleOperation if anything was committed since ``expected_version``."""
        if self._version != expected_version:
            raise StaleOperation(self.binder_id, expected_version, self._version)

    # ============= Adding =============

    def build_entries(
        self,
        items: Sequence[dict[str, Any]],
        *,
        include_reverse_holos: bool = False,
        reverse_holo_placement: str = "interleaved",
        reverse_holo_copies: int = 1,
        metadata: dict[str, Any] | None = None,
    ) -> list[CardEntry]:
        """Create entries for the given cards, synthesizing reverse holos when asked."""
        if reverse_holo_placement not in REVERSE_HOLO_PLACEMENTS:
            raise ValueError(f"Unknown reverse holo placement: {reverse_holo_placement}")
        metadata = metadata or {}

        regular: list[CardEntry] = []
        derived: list[list[CardEntry]] = []
        for card in items:
            if not isinstance(card, dict) or not card.get("id"):
                logger.warning(f"Skipping card without an id: {card!r}")
                continue
            entry = self._new_entry(card, metadata)
            regular.append(entry)
            copies: list[CardEntry] = []
            if include_reverse_holos and is_reverse_holo_eligible(card):
                copies = [self._reverse_holo_of(entry) for _ in range(max(0, reverse_holo_copies))]
            derived.append(copies)

        if reverse_holo_placement == "first":
            return [c for copies in derived for c in copies] + regular
        if reverse_holo_placement == "last":
            return regular + [c for copies in derived for c in copies]
        ordered: list[CardEntry] = []
        for entry, copies in zip(regular, derived):
            ordered.append(entry)
            ordered.extend(copies)
        return ordered

    def _new_entry(self, card: dict[str, Any], metadata: dict[str, Any]) -> CardEntry:
        return CardEntry(
            card_data=dict(card),
            added_by=self.owner_id,
            notes=metadata.get("notes") or "",
            condition=metadata.get("condition") or DEFAULT_CARD_CONDITION,
            quantity=int(metadata.get("quantity") or 1),
            is_protected=bool(metadata.get("isProtected", False)),
            reverse_holo=bool(card.get("reverseHolo", False)),
        )

    def _reverse_holo_of(self, original: CardEntry) -> CardEntry:
        card_data = dict(original.card_data)
        card_data["id"] = f"{original.card_id}{REVERSE_HOLO_ID_SUFFIX}"
        card_data["reverseHolo"] = True
        return CardEntry(
            card_data=card_data,
            added_by=original.added_by,
            notes=original.notes,
            condition=original.condition,
            quantity=original.quantity,
            is_protected=original.is_protected,
            reverse_holo=True,
            derived_from=original.card_id,
        )

    def add_cards(
        self,
        items: Sequence[dict[str, Any]],
        start_position: int | None = None,
        *,
        is_replacement: bool = False,
        preserve_order: bool = False,
        include_reverse_holos: bool = False,
        reverse_holo_placement: str = "interleaved",
        reverse_holo_copies: int = 1,
        metadata: dict[str, Any] | None = None,
    ) -> AddResult:
        """
        Place new cards, shifting occupants forward when inserting into a used range.

        Args:
            items: Card data dicts; each needs an "id"
            start_position: First slot for the batch. None appends after the last card.
            is_replacement: The batch replaces the whole binder (complete set flow)
            preserve_order: The batch is a complete set whose order must not be auto-sorted
            include_reverse_holos: Add reverse holo copies of eligible cards
            reverse_holo_placement: "interleaved", "first" or "last"
            reverse_holo_copies: Reverse holo copies per eligible card
            metadata: notes/condition/quantity/isProtected applied to every entry

        Returns:
            AddResult with the placed entries, the shift moves and the new page count

        With auto-sort on, a small batch is followed by a sort of the whole binder,
        persisted as one relayout. A complete set (a replacement, ``preserve_order``,
        or a batch of at least COMPLETE_SET_MIN_CARDS entries) turns auto-sort off
        instead so the set keeps its own order.

        Raises:
            LimitExceeded: The batch does not fit; nothing was changed
        """
        if not items:
            raise ValueError("No cards to add")
        if start_position is not None and (start_position < 0 or start_position > MAX_POSITION):
            raise ValueError(f"Invalid start position: {start_position}")

        entries = self.build_entries(
            items,
            include_reverse_holos=include_reverse_holos,
            reverse_holo_placement=reverse_holo_placement,
            reverse_holo_copies=reverse_holo_copies,
            metadata=metadata,
        )
        if not entries:
            logger.warning(f"No valid cards to add to binder {self.binder_id}")
            return AddResult(page_count=self.settings.page_count, version=self._version)

        grid = self.grid
        base = PositionStore() if is_replacement else self.store
        slot_capacity = self.check_capacity(len(entries), is_replacement=is_replacement)
        occupancy = len(base)

        working = base.copy()
        if start_position is None:
            top = working.max_position()
            start = 0 if top is None else top + 1
        else:
            start = start_position
        if start + len(entries) - 1 > MAX_POSITION:
            raise LimitExceeded(
                len(entries),
                max(0, slot_capacity - occupancy),
                slot_capacity,
                reason=f"Cards would be placed past position {MAX_POSITION}",
            )

        shift_moves: list[Move] = []
        insertion = range(start, start + len(entries))
        if start_position is not None and any(position in working for position in insertion):
            shift_moves = order_moves(
                Move(position, position + len(entries))
                for position in working.positions()
                if position >= start
            )

        placed: dict[int, CardEntry] = {}
        try:
            self._apply_moves(working, shift_moves)
            for offset, entry in enumerate(entries):
                working.place(start + offset, entry)
                placed[start + offset] = entry
        except PositionConflict as exc:
            logger.error(f"Position conflict while adding to binder {self.binder_id}: {exc}")
            raise
        except ValueError as exc:
            raise LimitExceeded(
                len(entries), max(0, slot_capacity - occupancy), slot_capacity, reason=str(exc)
            ) from exc

        required = page_layout.required_pages_for(working, grid)
        if required > self.settings.max_pages:
            raise LimitExceeded(
                len(entries),
                max(0, slot_capacity - occupancy),
                slot_capacity,
                reason=(
                    f"Cards would need {required} pages; "
                    f"the binder allows {self.settings.max_pages}"
                ),
            )
        new_page_count = max(required, self.settings.page_count, self.settings.min_pages)
        settings = self.settings.with_changes(page_count=new_page_count)

        sorted_after_add = False
        if settings.sorts_on_add:
            complete_set = (
                is_replacement or preserve_order or len(entries) >= COMPLETE_SET_MIN_CARDS
            )
            if complete_set:
                logger.info(f"Auto-sort turned off for binder {self.binder_id}: complete set added")
                settings = settings.with_changes(auto_sort=False, sort_by=DEFAULT_SORT_BY)
            else:
                ordered = sort_entries(self._entries_of(working), settings.sort_by)
                working = self._packed_layout(ordered)
                placed = {working.position_of(entry.instance_id): entry for entry in entries}
                sorted_after_add = True

        if sorted_after_add:
            future = self.persistence.relayout(self.binder_id, working.as_dict(), settings)
        else:
            options = AddOptions(
                is_replacement=is_replacement,
                shift_moves=shift_moves,
                page_count=new_page_count,
                settings=settings,
            )
            future = self.persistence.add(self.binder_id, placed, start_position, options)
        self._persist(future, "add")

        self.store.replace_contents(working)
        self.settings = settings
        if is_replacement:
            self.overlay.clear()
        self._version += 1
        logger.info(
            f"Added {len(placed)} cards to binder {self.binder_id} at {start}"
            f"{f' (shifted {len(shift_moves)})' if shift_moves else ''}"
            f"{f', sorted by {settings.sort_by}' if sorted_after_add else ''}"
        )
        return AddResult(
            accepted=sorted(placed.items()),
            shifted=shift_moves,
            page_count=new_page_count,
            version=self._version,
        )

    # ============= Moving =============

    def validate_moves(self, moves: Sequence[Move]) -> None:
        """Raise InvalidMove unless the batch can be applied as a whole."""
        sources = [move.from_position for move in moves]
        targets = [move.to_position for move in moves]
        if len(set(sources)) != len(sources):
            raise InvalidMove("A position is moved more than once in the same batch")
        if len(set(targets)) != len(targets):
            raise InvalidMove("Two cards cannot be moved to the same position")

        moving = set(sources)
        for move in moves:
            for position in (move.from_position, move.to_position):
                if isinstance(position, bool) or not isinstance(position, int):
                    raise InvalidMove(f"Position must be an int, got {position!r}")
                if position < 0 or position > MAX_POSITION:
                    raise InvalidMove(f"Position {position} is out of range")
            if move.from_position == move.to_position:
                raise InvalidMove("Source and destination positions are the same")
            if move.from_position not in self.store:
                raise InvalidMove(f"No card at source position {move.from_position}")
            if move.to_position in self.store and move.to_position not in moving:
                raise InvalidMove(f"Destination position {move.to_position} is occupied")

    def _apply_moves(self, working: PositionStore, moves: Sequence[Move]) -> None:
        # Two phases: lift every source, then drop in order. A collision here is a defect.
        lifted = []
        for move in moves:
            entry = working.remove(move.from_position)
            if entry is None:
                raise PositionConflict(move.from_position, "source emptied mid-batch")
            lifted.append((move, entry))
        for move, entry in lifted:
            working.place(move.to_position, entry)

    def move_cards(self, moves: Sequence[Move]) -> list[Move]:
        """
        Relocate entries as one batch.

        Args:
            moves: Source/destination pairs. A destination must be empty or vacated by
                another move in the same batch.

        Returns:
            The moves in the order they were applied and persisted
        """
        moves = [move if isinstance(move, Move) else Move(*move) for move in moves]
        if not moves:
            return []
        self.validate_moves(moves)
        ordered = order_moves(moves)

        working = self.store.copy()
        try:
            self._apply_moves(working, ordered)
        except PositionConflict as exc:
            logger.error(f"Position conflict while moving cards in {self.binder_id}: {exc}")
            raise

        required = page_layout.required_pages_for(working, self.grid)
        if required > self.settings.max_pages:
            raise InvalidMove(
                f"Moves would need {required} pages; the binder allows {self.settings.max_pages}"
            )

        self._persist(self.persistence.move(self.binder_id, ordered), "move")
        self.store.replace_contents(working)
        self._version += 1
        logger.info(f"Moved {len(ordered)} cards in binder {self.binder_id}")
        return ordered

    def swap_cards(self, first: int, second: int) -> list[Move]:
        if first not in self.store:
            raise InvalidMove(f"No card at source position {first}")
        if second in self.store:
            return self.move_cards([Move(first, second), Move(second, first)])
        return self.move_cards([Move(first, second)])

    def move_card(self, from_position: int, to_position: int, mode: str = "swap") -> list[Move]:
        """
        Drag-and-drop move of a single card.

        In "swap" mode an occupied destination trades places with the card. In
        "shift" mode the cards between the two positions slide one slot toward
        the vacated position.
        """
        if mode not in ("swap", "shift"):
            raise ValueError(f"Unknown move mode: {mode}")
        if to_position not in self.store or mode == "swap":
            return self.swap_cards(from_position, to_position)
        if from_position not in self.store:
            raise InvalidMove(f"No card at source position {from_position}")

        if from_position < to_position:
            between = [p for p in self.store.positions() if from_position < p <= to_position]
            moves = [Move(p, p - 1) for p in between]
        else:
            between = [p for p in self.store.positions() if to_position <= p < from_position]
            moves = [Move(p, p + 1) for p in between]
        moves.append(Move(from_position, to_position))
        return self.move_cards(moves)

    # ============= Removing =============

    def remove_card(self, position: int) -> CardEntry | None:
        """Delete the entry at ``position``. Other entries keep their positions."""
        entry = self.store.get(position)
        if entry is None:
            logger.debug(f"No card to remove at position {position} in binder {self.binder_id}")
            return None

        self._persist(self.persistence.remove(self.binder_id, [position]), "remove")
        self.store.remove(position)
        self.overlay.unmark(entry.instance_id)
        self._version += 1
        logger.info(f"Removed card {entry.card_id} from position {position} in {self.binder_id}")
        return entry

    def clear_all(self, reason: str = DEFAULT_CLEAR_REASON) -> int:
        """
        Empty the binder and drop the page count back to the minimum.

        Returns:
            How many entries were removed
        """
        count = len(self.store)
        if count == 0:
            return 0

        logger.info(f"Clearing {count} cards from binder {self.binder_id} ({reason})")
        self._persist(self.persistence.clear(self.binder_id, reason), "clear")
        self.store.clear()
        self.overlay.clear()
        self.settings = self.settings.with_changes(page_count=self.settings.min_pages)
        self._version += 1
        return count

    # ============= Missing Overlay =============

    def toggle_missing(self, position: int) -> bool:
        """Flip the missing flag for the card at ``position`` and return the new state."""
        entry = self.store.get(position)
        if entry is None:
            raise EmptyPosition(position)
        state = self.overlay.toggle(entry.instance_id)
        try:
            self._persist(
                self.persistence.save_missing(self.binder_id, self.overlay.missing_ids()),
                "missing flags",
            )
        except BinderError:
            self.overlay.toggle(entry.instance_id)
            raise
        logger.debug(f"Card at {position} in {self.binder_id} missing={state}")
        return state

    # ============= Capacity =============

    def count_new_entries(
        self,
        items: Sequence[dict[str, Any]],
        *,
        include_reverse_holos: bool = False,
        reverse_holo_copies: int = 1,
    ) -> int:
        """Number of entries ``add_cards`` would create for these items."""
        count = 0
        for card in items:
            if not isinstance(card, dict) or not card.get("id"):
                continue
            count += 1
            if include_reverse_holos and is_reverse_holo_eligible(card):
                count += max(0, reverse_holo_copies)
        return count

    def check_capacity(self, batch_size: int, *, is_replacement: bool = False) -> int:
        """
        Raise LimitExceeded unless ``batch_size`` more entries fit.

        Returns:
            The capacity the check was made against
        """
        grid = self.grid
        base = PositionStore() if is_replacement else self.store
        total = page_layout.total_logical_pages(base, grid, self.settings)
        slot_capacity = page_layout.capacity(total, grid.slots_per_page)
        occupancy = len(base)
        if occupancy + batch_size > slot_capacity:
            remaining = max(0, slot_capacity - occupancy)
            logger.info(
                f"Rejected adding {batch_size} cards to binder {self.binder_id}: "
                f"{remaining} of {slot_capacity} slots remaining"
            )
            raise LimitExceeded(batch_size, remaining, slot_capacity)
        return slot_capacity

    def compute_expansion_options(self, needed_slots: int) -> list[ExpansionOption]:
        """
        Suggest ways to make room for ``needed_slots`` more cards.

        Options are only reported; choosing and applying one is up to the caller.
        """
        grid = self.grid
        total = self.total_pages()
        current_capacity = page_layout.capacity(total, grid.slots_per_page)
        shortfall = len(self.store) + needed_slots - current_capacity
        if shortfall <= 0:
            return []

        options: list[ExpansionOption] = []
        for candidate in available_grid_configs():
            if candidate.slots_per_page <= grid.slots_per_page:
                continue
            new_capacity = page_layout.capacity(total, candidate.slots_per_page)
            if new_capacity - current_capacity >= shortfall:
                options.append(
                    ExpansionOption(
                        kind="grid",
                        grid_size=candidate.id,
                        new_page_count=total,
                        new_capacity=new_capacity,
                        additional_slots=new_capacity - current_capacity,
                    )
                )

        pages_to_add = math.ceil(shortfall / (grid.slots_per_page * 2))
        new_total = total + pages_to_add
        if new_total <= self.settings.max_pages:
            new_capacity = page_layout.capacity(new_total, grid.slots_per_page)
            options.append(
                ExpansionOption(
                    kind="pages",
                    pages_to_add=pages_to_add,
                    new_page_count=new_total,
                    new_capacity=new_capacity,
                    additional_slots=new_capacity - current_capacity,
                )
            )
        else:
            logger.debug(
                f"Adding {pages_to_add} pages would exceed the {self.settings.max_pages} page limit"
            )
        return options

    def apply_expansion(self, option: ExpansionOption) -> BinderSettings:
        if option.kind == "grid" and option.grid_size:
            return self.set_grid_size(option.grid_size, keep_page_count=True)
        if option.kind == "pages":
            return self.add_pages(option.pages_to_add)
        raise ValueError(f"Unknown expansion option: {option}")

    def add_pages(self, count: int = 1) -> BinderSettings:
        if count < 1:
            raise ValueError("Page count to add must be positive")
        current = self.total_pages()
        new_page_count = current + count
        if new_page_count > self.settings.max_pages:
            raise PageLimitError(
                f"Cannot add {count} pages: maximum is {self.settings.max_pages}, "
                f"only {max(0, self.settings.max_pages - current)} more allowed"
            )
        settings = self.settings.with_changes(page_count=new_page_count)
        self._persist(self.persistence.update_settings(self.binder_id, settings), "add pages")
        self.settings = settings
        logger.info(f"Binder {self.binder_id} now has {new_page_count} pages")
        return settings

    def remove_last_page(self) -> BinderSettings:
        current = self.total_pages()
        if current <= self.settings.min_pages:
            raise PageLimitError(f"Cannot remove pages. Minimum is {self.settings.min_pages}")
        last_page = page_layout.logical_page_positions(current - 1, self.grid.slots_per_page)
        if self.store.entries_in_range(last_page.start, last_page.stop):
            raise PageLimitError("Cannot remove page - last page contains cards")

        settings = self.settings.with_changes(page_count=current - 1)
        self._persist(self.persistence.update_settings(self.binder_id, settings), "remove page")
        self.settings = settings
        logger.info(f"Removed page {current} from binder {self.binder_id}")
        return settings

    def set_grid_size(self, grid_size: str, *, keep_page_count: bool = False) -> BinderSettings:
        """
        Switch grid geometry. Positions never move; the page count follows the new grid.

        Args:
            grid_size: New grid identifier (validated strictly)
            keep_page_count: Keep the current page total instead of shrinking to fit
        """
        new_grid = resolve_grid_config(grid_size, strict=True)
        required = page_layout.required_pages_for(self.store, new_grid)
        floor = self.total_pages() if keep_page_count else self.settings.min_pages
        page_count = min(max(required, floor), max(self.settings.max_pages, required))
        settings = self.settings.with_changes(grid_size=new_grid.id, page_count=page_count)
        self._persist(self.persistence.update_settings(self.binder_id, settings), "grid size")
        logger.info(
            f"Grid size for {self.binder_id}: {self.settings.grid_size} -> {new_grid.id}, "
            f"{page_count} pages"
        )
        self.settings = settings
        return settings

    def compact(self, scope: str = "binder", page_indices: Iterable[int] = ()) -> int:
        """
        Close gaps on request. Never happens implicitly.

        Args:
            scope: "binder" packs every card from position 0; "page" packs each listed
                physical page within its own slot range
            page_indices: Physical page indices used with scope="page"

        Returns:
            Number of entries that changed position
        """
        spp = self.grid.slots_per_page
        if scope == "binder":
            working = self._packed_layout(self._entries_of(self.store))
        elif scope == "page":
            working = PositionStore()
            ranges = [range(i * spp, (i + 1) * spp) for i in sorted(set(page_indices))]
            for position, entry in self.store.items():
                owning = next((r for r in ranges if position in r), None)
                if owning is None:
                    working.place(position, entry)
            for page_range in ranges:
                page_entries = self.store.entries_in_range(page_range.start, page_range.stop)
                for offset, (_, entry) in enumerate(page_entries):
                    working.place(page_range.start + offset, entry)
        else:
            raise ValueError(f"Unknown compaction scope: {scope}")

        upserts, _ = working.diff(self.store)
        if not upserts:
            return 0
        self._persist(
            self.persistence.relayout(self.binder_id, working.as_dict(), self.settings), "compact"
        )
        self.store.replace_contents(working)
        self._version += 1
        logger.info(f"Compacted {len(upserts)} cards in binder {self.binder_id} ({scope})")
        return len(upserts)

    # ============= Sorting =============

    def sort_cards(self, sort_by: str | None = None) -> int:
        """
        Reorder every card and pack them from position 0.

        Args:
            sort_by: One of SORT_OPTIONS. None uses the binder's ``sort_by`` setting.
                "custom" keeps the current arrangement.

        Returns:
            Number of entries that changed position
        """
        sort_by = sort_by or self.settings.sort_by
        if not is_valid_sort_option(sort_by):
            raise ValueError(f"Unknown sort option: {sort_by}")
        if sort_by == DEFAULT_SORT_BY:
            return 0

        working = self._packed_layout(sort_entries(self._entries_of(self.store), sort_by))
        upserts, _ = working.diff(self.store)
        if not upserts:
            return 0
        self._persist(
            self.persistence.relayout(self.binder_id, working.as_dict(), self.settings), "sort"
        )
        self.store.replace_contents(working)
        self._version += 1
        logger.info(f"Sorted binder {self.binder_id} by {sort_by} ({len(upserts)} cards moved)")
        return len(upserts)

    def set_auto_sort(self, enabled: bool, sort_by: str | None = None) -> BinderSettings:
        """Turn sorting after each addition on or off. Cards already placed stay put."""
        sort_by = sort_by or self.settings.sort_by
        if not is_valid_sort_option(sort_by):
            raise ValueError(f"Unknown sort option: {sort_by}")
        settings = self.settings.with_changes(auto_sort=bool(enabled), sort_by=sort_by)
        self._persist(self.persistence.update_settings(self.binder_id, settings), "auto-sort")
        self.settings = settings
        logger.info(f"Auto-sort for {self.binder_id}: {'on' if enabled else 'off'} ({sort_by})")
        return settings

    @staticmethod
    def _entries_of(store: PositionStore) -> list[CardEntry]:
        return [entry for _, entry in store.items()]

    @staticmethod
    def _packed_layout(entries: Iterable[CardEntry]) -> PositionStore:
        working = PositionStore()
        for index, entry in enumerate(entries):
            working.place(index, entry)
        return working

    # ============= Persistence =============

    def _persist(self, future: Future, description: str) -> PersistResult:
        try:
            result = future.result(timeout=self._timeout)
        except BinderError:
            raise
        except Exception as exc:
            logger.error(f"Failed to persist {description} for binder {self.binder_id}: {exc}")
            raise PersistenceError(f"Failed to persist {description}: {exc}") from exc
        if isinstance(result, PersistResult) and not result.success:
            raise PersistenceError(result.error or f"Backing store rejected {description}")
        return result


__all__ = ["PlacementEngine", "is_reverse_holo_eligible", "order_moves"]
