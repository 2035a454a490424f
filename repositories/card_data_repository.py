"""
Card Data Repository - Read access to set card lists.

Set lists are stored as one JSON file per set (a list of card dicts) under the
card data directory. Each card needs at least an "id"; "number", "rarity" and
"set" are used for ordering and reverse holo estimates when present.
"""

from __future__ import annotations

import json
import math
import re
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any

from loguru import logger

from utils.constants import (
    PERSISTENCE_MAX_WORKERS,
    REVERSE_HOLO_ELIGIBLE_RARITIES,
    REVERSE_HOLO_ESTIMATE_RATIO,
    REVERSE_HOLO_ID_SUFFIX,
    SET_CARDS_DIR,
)

_NUMBER_PATTERN = re.compile(r"^(\d+)(.*)$")


def estimate_reverse_holo_count(printed_total: int, copies: int = 1) -> int:
    """Rough count of reverse holo cards a set adds. Only an estimate."""
    if printed_total <= 0 or copies <= 0:
        return 0
    return math.floor(printed_total * REVERSE_HOLO_ESTIMATE_RATIO) * copies


def _is_reverse_holo(card: dict[str, Any]) -> bool:
    return bool(card.get("reverseHolo")) or str(card.get("id", "")).endswith(
        REVERSE_HOLO_ID_SUFFIX
    )


def card_sort_key(card: dict[str, Any]) -> tuple:
    """Numeric collector numbers first in numeric order, then the rest alphabetically."""
    number = str(card.get("number") or "")
    match = _NUMBER_PATTERN.match(number)
    reverse = 1 if _is_reverse_holo(card) else 0
    if match:
        return (0, int(match.group(1)), match.group(2), "", reverse)
    return (1, 0, "", number.lower(), reverse)


def sort_set_cards(cards: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order cards by collector number, each reverse holo right after its regular card."""
    return sorted(cards, key=card_sort_key)


class CardDataRepository:
    """Repository for set card lists used to fill binders."""

    def __init__(
        self,
        cards_dir: Path | None = None,
        executor: ThreadPoolExecutor | None = None,
    ):
        """
        Initialize the card data repository.

        Args:
            cards_dir: Directory holding one <set_id>.json file per set
            executor: Thread pool used for async fetches. If None, a small pool is created.
        """
        self.cards_dir = Path(cards_dir) if cards_dir is not None else SET_CARDS_DIR
        self._executor = executor
        self._cache: dict[str, list[dict[str, Any]]] = {}

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=PERSISTENCE_MAX_WORKERS, thread_name_prefix="card-data"
            )
        return self._executor

    # ============= Set Card Lists =============

    def set_file(self, set_id: str) -> Path:
        return self.cards_dir / f"{set_id}.json"

    def get_set_cards(self, set_id: str) -> list[dict[str, Any]]:
        """
        Load the card list for a set.

        Args:
            set_id: Set identifier, e.g. "sv1"

        Returns:
            Cards sorted by collector number, or an empty list if the set is unavailable
        """
        if set_id in self._cache:
            return list(self._cache[set_id])

        path = self.set_file(set_id)
        if not path.exists():
            logger.warning(f"No card data for set {set_id} at {path}")
            return []
        try:
            with path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Failed to load card data for set {set_id}: {exc}")
            return []

        if isinstance(data, dict):
            data = data.get("data") or data.get("cards") or []
        cards = [card for card in data if isinstance(card, dict) and card.get("id")]
        cards = sort_set_cards(cards)
        self._cache[set_id] = cards
        logger.debug(f"Loaded {len(cards)} cards for set {set_id}")
        return list(cards)

    def fetch_set_cards_async(self, set_id: str) -> Future:
        """Load a set's card list on the worker pool."""
        return self._get_executor().submit(self.get_set_cards, set_id)

    def set_card_stats(self, set_id: str, copies: int = 1) -> dict[str, int]:
        """
        Summarize a set before adding it.

        Returns:
            Dictionary with "total" cards, "reversible" eligible cards and
            "estimated_reverse" from the printed total heuristic
        """
        cards = self.get_set_cards(set_id)
        reversible = sum(1 for card in cards if card.get("rarity") in REVERSE_HOLO_ELIGIBLE_RARITIES)
        printed_total = len(cards)
        for card in cards:
            set_info = card.get("set")
            if isinstance(set_info, dict) and set_info.get("printedTotal"):
                printed_total = int(set_info["printedTotal"])
                break
        return {
            "total": len(cards),
            "reversible": reversible,
            "estimated_reverse": estimate_reverse_holo_count(printed_total, copies),
        }

    def clear_cache(self) -> None:
        self._cache.clear()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None


_default_repository: CardDataRepository | None = None


def get_card_data_repository() -> CardDataRepository:
    """Get the default card data repository instance."""
    global _default_repository
    if _default_repository is None:
        _default_repository = CardDataRepository()
    return _default_repository


def reset_card_data_repository() -> None:
    """
    Reset the global card data repository instance.

    This is primarily useful for testing to ensure test isolation.
    """
    global _default_repository
    if _default_repository is not None:
        _default_repository.close()
    _default_repository = None


__all__ = [
    "CardDataRepository",
    "card_sort_key",
    "estimate_reverse_holo_count",
    "get_card_data_repository",
    "reset_card_data_repository",
    "sort_set_cards",
]
