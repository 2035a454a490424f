"""Sort keys for reordering the cards placed in a binder."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from utils.binder_models import CardEntry
from utils.constants import RARITY_ORDER, SORT_OPTIONS, TYPE_ORDER

_CARD_NUMBER_PATTERN = re.compile(r"^([a-z]*?)(\d+)([a-z]*?)$")
_UNKNOWN_NUMBER = 999999
_UNKNOWN_WEIGHT = 999

_RARITY_WEIGHTS = {rarity: index + 1 for index, rarity in enumerate(RARITY_ORDER)}
_TYPE_WEIGHTS = {card_type: index + 1 for index, card_type in enumerate(TYPE_ORDER)}


def is_valid_sort_option(sort_by: str | None) -> bool:
    return sort_by in SORT_OPTIONS


def parse_card_number(number: Any) -> tuple[str, int, str]:
    """
    Split a printed card number into (prefix, numeric part, suffix).

    Handles "1", "001", "12a" and "SWSH001". Numbers that do not fit the
    pattern sort after every parsable number.
    """
    if number is None or number == "":
        return "", _UNKNOWN_NUMBER, "zzz"
    text = str(number).lower()
    match = _CARD_NUMBER_PATTERN.match(text)
    if match is None:
        return "", _UNKNOWN_NUMBER, text
    prefix, numeric, suffix = match.groups()
    return prefix, int(numeric), suffix


def rarity_weight(rarity: str | None) -> int:
    return _RARITY_WEIGHTS.get(rarity or "", _UNKNOWN_WEIGHT)


def type_weight(types: Any) -> int:
    # Only the first listed type counts
    if not isinstance(types, list) or not types:
        return _UNKNOWN_WEIGHT
    return _TYPE_WEIGHTS.get(types[0], _UNKNOWN_WEIGHT)


def _set_name(card: dict[str, Any]) -> str:
    card_set = card.get("set")
    if isinstance(card_set, dict):
        return str(card_set.get("name") or "").casefold()
    return ""


def _sort_key(sort_by: str, card: dict[str, Any]) -> tuple:
    prefix, numeric, suffix = parse_card_number(card.get("number"))
    set_name = _set_name(card)
    if sort_by == "set":
        return set_name, prefix, numeric, suffix
    if sort_by == "rarity":
        return rarity_weight(card.get("rarity")), set_name, numeric
    if sort_by == "number":
        return prefix, numeric, suffix, set_name
    if sort_by == "type":
        return type_weight(card.get("types")), rarity_weight(card.get("rarity")), set_name, numeric
    if sort_by == "name":
        return (str(card.get("name") or "").casefold(),)
    raise ValueError(f"Unknown sort option: {sort_by}")


def sort_entries(entries: Iterable[CardEntry], sort_by: str) -> list[CardEntry]:
    """
    Return entries in the order ``sort_by`` describes.

    The sort is stable, so entries with equal keys keep their current relative
    order. "custom" keeps the given order unchanged.
    """
    entries = list(entries)
    if not is_valid_sort_option(sort_by):
        raise ValueError(f"Unknown sort option: {sort_by}")
    if sort_by == "custom":
        return entries
    return sorted(entries, key=lambda entry: _sort_key(sort_by, entry.card_data))


__all__ = [
    "is_valid_sort_option",
    "parse_card_number",
    "rarity_weight",
    "sort_entries",
    "type_weight",
]
