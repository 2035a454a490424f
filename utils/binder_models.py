"""Data model shared by the binder layout, placement and persistence layers."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from utils.constants import (
    DEFAULT_CARD_CONDITION,
    DEFAULT_GRID_SIZE,
    DEFAULT_MAX_PAGES,
    DEFAULT_MIN_PAGES,
    DEFAULT_PAGE_COUNT,
    DEFAULT_SORT_BY,
    SORT_OPTIONS,
)


def generate_instance_id() -> str:
    """Return a fresh identifier for one placed copy of a card."""
    return uuid.uuid4().hex


def utc_timestamp() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class CardEntry:
    """One placed copy of a card, owned by the slot that holds it.

    ``derived_from`` is only set on synthesized reverse-holo entries and holds the
    identity of the original card. It is a lookup key, not a link to another entry.
    """

    card_data: dict[str, Any]
    instance_id: str = field(default_factory=generate_instance_id)
    added_at: str = field(default_factory=utc_timestamp)
    added_by: str = "local_user"
    notes: str = ""
    condition: str = DEFAULT_CARD_CONDITION
    quantity: int = 1
    is_protected: bool = False
    reverse_holo: bool = False
    derived_from: str | None = None

    @property
    def card_id(self) -> str | None:
        value = self.card_data.get("id")
        return str(value) if value is not None else None

    @property
    def rarity(self) -> str | None:
        return self.card_data.get("rarity")

    def to_document(self) -> dict[str, Any]:
        return {
            "instanceId": self.instance_id,
            "cardId": self.card_id,
            "cardData": dict(self.card_data),
            "addedAt": self.added_at,
            "addedBy": self.added_by,
            "notes": self.notes,
            "condition": self.condition,
            "quantity": self.quantity,
            "isProtected": self.is_protected,
            "reverseHolo": self.reverse_holo,
            "derivedFrom": self.derived_from,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> CardEntry:
        card_data = document.get("cardData")
        if not isinstance(card_data, dict):
            # Older documents only stored the card id
            card_data = {"id": document.get("cardId")}
        return cls(
            card_data=dict(card_data),
            instance_id=document.get("instanceId") or generate_instance_id(),
            added_at=document.get("addedAt") or utc_timestamp(),
            added_by=document.get("addedBy") or "local_user",
            notes=document.get("notes") or "",
            condition=document.get("condition") or DEFAULT_CARD_CONDITION,
            quantity=int(document.get("quantity") or 1),
            is_protected=bool(document.get("isProtected", False)),
            reverse_holo=bool(document.get("reverseHolo", False)),
            derived_from=document.get("derivedFrom"),
        )


@dataclass
class BinderSettings:
    """Layout settings for one binder.

    ``page_count`` is a stored hint. It never caps what occupancy requires.
    With ``auto_sort`` on, small additions are followed by a sort on ``sort_by``.
    """

    grid_size: str = DEFAULT_GRID_SIZE
    page_count: int = DEFAULT_PAGE_COUNT
    min_pages: int = DEFAULT_MIN_PAGES
    max_pages: int = DEFAULT_MAX_PAGES
    auto_sort: bool = False
    sort_by: str = DEFAULT_SORT_BY

    @property
    def sorts_on_add(self) -> bool:
        return self.auto_sort and self.sort_by != DEFAULT_SORT_BY

    def with_changes(self, **changes: Any) -> BinderSettings:
        return replace(self, **changes)

    def to_document(self) -> dict[str, Any]:
        return {
            "gridSize": self.grid_size,
            "pageCount": self.page_count,
            "minPages": self.min_pages,
            "maxPages": self.max_pages,
            "autoSort": self.auto_sort,
            "sortBy": self.sort_by,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any] | None) -> BinderSettings:
        document = document or {}
        sort_by = document.get("sortBy") or DEFAULT_SORT_BY
        return cls(
            grid_size=document.get("gridSize") or DEFAULT_GRID_SIZE,
            page_count=int(document.get("pageCount") or DEFAULT_PAGE_COUNT),
            min_pages=int(document.get("minPages") or DEFAULT_MIN_PAGES),
            max_pages=int(document.get("maxPages") or DEFAULT_MAX_PAGES),
            auto_sort=bool(document.get("autoSort", False)),
            sort_by=sort_by if sort_by in SORT_OPTIONS else DEFAULT_SORT_BY,
        )


@dataclass(frozen=True)
class Move:
    from_position: int
    to_position: int

    @property
    def direction(self) -> int:
        """1 when the entry moves toward higher positions, -1 toward lower, 0 for no-op."""
        if self.to_position > self.from_position:
            return 1
        if self.to_position < self.from_position:
            return -1
        return 0

    def to_document(self) -> dict[str, int]:
        return {"fromPosition": self.from_position, "toPosition": self.to_position}


@dataclass(frozen=True)
class PageSide:
    kind: str  # "cover" | "cards"
    physical_index: int | None = None
    page_number: int | None = None

    @property
    def is_cover(self) -> bool:
        return self.kind == "cover"


@dataclass(frozen=True)
class PageSpread:
    logical_index: int
    left: PageSide
    right: PageSide


@dataclass(frozen=True)
class ExpansionOption:
    """A candidate remedy for insufficient capacity."""

    kind: str  # "grid" | "pages"
    new_capacity: int
    additional_slots: int
    grid_size: str | None = None
    pages_to_add: int = 0
    new_page_count: int | None = None


@dataclass
class AddResult:
    accepted: list[tuple[int, CardEntry]] = field(default_factory=list)
    shifted: list[Move] = field(default_factory=list)
    page_count: int = DEFAULT_PAGE_COUNT
    version: int = 0

    @property
    def count(self) -> int:
        return len(self.accepted)


@dataclass
class AddOptions:
    """Extra payload carried by a single persistence ``add`` call."""

    is_replacement: bool = False
    shift_moves: list[Move] = field(default_factory=list)
    page_count: int | None = None
    settings: BinderSettings | None = None


@dataclass
class PersistResult:
    success: bool = True
    count: int = 0
    version: int | None = None
    error: str | None = None


@dataclass
class BinderDocument:
    """Snapshot of one binder as held by the backing store."""

    binder_id: str
    cards: dict[int, CardEntry] = field(default_factory=dict)
    settings: BinderSettings = field(default_factory=BinderSettings)
    missing: list[str] = field(default_factory=list)
    owner_id: str = "local_user"
    version: int = 0

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.binder_id,
            "ownerId": self.owner_id,
            "cards": {str(position): entry.to_document() for position, entry in self.cards.items()},
            "settings": self.settings.to_document(),
            "missingInstances": list(self.missing),
            "version": self.version,
        }

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> BinderDocument:
        cards: dict[int, CardEntry] = {}
        for key, value in (document.get("cards") or {}).items():
            try:
                position = int(key)
            except (TypeError, ValueError):
                continue
            if position < 0 or not isinstance(value, dict):
                continue
            cards[position] = CardEntry.from_document(value)
        return cls(
            binder_id=str(document.get("_id")),
            cards=cards,
            settings=BinderSettings.from_document(document.get("settings")),
            missing=list(document.get("missingInstances") or []),
            owner_id=document.get("ownerId") or "local_user",
            version=int(document.get("version") or 0),
        )


__all__ = [
    "AddOptions",
    "AddResult",
    "BinderDocument",
    "BinderSettings",
    "CardEntry",
    "ExpansionOption",
    "Move",
    "PageSide",
    "PageSpread",
    "PersistResult",
    "generate_instance_id",
    "utc_timestamp",
]
