"""Constants file."""

import os
import sys
from pathlib import Path

APP_NAME = "Card Binder Tools"


def _default_base_dir() -> Path:
    """Return the writable base directory for config, logs and card data."""
    env_dir = os.getenv("CARD_BINDER_HOME")
    if env_dir:
        return Path(env_dir)
    if getattr(sys, "frozen", False):
        local_appdata = os.getenv("LOCALAPPDATA")
        if local_appdata:
            return Path(local_appdata) / APP_NAME
        return Path.home() / ".card_binder_tools"
    return Path(__file__).resolve().parent.parent


BASE_DATA_DIR = _default_base_dir()
CONFIG_DIR = BASE_DATA_DIR / "config"
LOGS_DIR = BASE_DATA_DIR / "logs"
SET_CARDS_DIR = BASE_DATA_DIR / "cards" / "en"
CONFIG_FILE = CONFIG_DIR / "config.json"

# Grid geometries keyed by the identifier stored in binder settings
GRID_CONFIGS: dict[str, tuple[int, int]] = {
    "1x1": (1, 1),
    "2x2": (2, 2),
    "3x3": (3, 3),
    "4x3": (4, 3),
    "4x4": (4, 4),
}
GRID_LABELS = {
    "1x1": "Single",
    "2x2": "Small",
    "3x3": "Medium",
    "4x3": "Wide",
    "4x4": "Large",
}
DEFAULT_GRID_SIZE = "3x3"

DEFAULT_PAGE_COUNT = 1
DEFAULT_MIN_PAGES = 1
DEFAULT_MAX_PAGES = 100
MAX_POSITION = 10000

DEFAULT_CARD_CONDITION = "mint"
DEFAULT_CLEAR_REASON = "clear_for_replacement"

REVERSE_HOLO_ELIGIBLE_RARITIES = frozenset({"Common", "Uncommon", "Rare", "Rare Holo"})
# Rough share of a set's printed cards that have a reverse holo printing.
REVERSE_HOLO_ESTIMATE_RATIO = 0.6
REVERSE_HOLO_PLACEMENTS = ("interleaved", "first", "last")
REVERSE_HOLO_ID_SUFFIX = "_reverse"

SORT_OPTIONS = {
    "custom": "Custom Order",
    "set": "By Set",
    "rarity": "By Rarity",
    "number": "By Card Number",
    "type": "By Type",
    "name": "By Name (A-Z)",
}
DEFAULT_SORT_BY = "custom"
# Batches this large are treated as a complete set and keep their own order
COMPLETE_SET_MIN_CARDS = 15
RARITY_ORDER = (
    "Common",
    "Uncommon",
    "Rare",
    "Rare Holo",
    "Rare Holo EX",
    "Rare Holo GX",
    "Rare Holo V",
    "Rare Holo VMAX",
    "Rare Holo VSTAR",
    "Rare Ultra",
    "Rare Secret",
    "Rare Rainbow",
    "Promo",
    "Amazing Rare",
    "Rare Radiant",
    "Special Illustration Rare",
    "Hyper Rare",
    "Illustration Rare",
    "Ultra Rare",
)
TYPE_ORDER = (
    "Fire",
    "Water",
    "Grass",
    "Lightning",
    "Psychic",
    "Fighting",
    "Darkness",
    "Metal",
    "Fairy",
    "Dragon",
    "Colorless",
)

MONGO_URI = os.getenv("CARD_BINDER_MONGO_URI", "mongodb://localhost:27017/")
MONGO_DATABASE = os.getenv("CARD_BINDER_DB", "card_binder")
MONGO_BINDERS_COLLECTION = "binders"

PERSISTENCE_TIMEOUT_SECONDS = 30.0
PERSISTENCE_MAX_WORKERS = 4

__all__ = [
    "APP_NAME",
    "BASE_DATA_DIR",
    "CONFIG_DIR",
    "LOGS_DIR",
    "SET_CARDS_DIR",
    "CONFIG_FILE",
    "GRID_CONFIGS",
    "GRID_LABELS",
    "DEFAULT_GRID_SIZE",
    "DEFAULT_PAGE_COUNT",
    "DEFAULT_MIN_PAGES",
    "DEFAULT_MAX_PAGES",
    "MAX_POSITION",
    "DEFAULT_CARD_CONDITION",
    "DEFAULT_CLEAR_REASON",
    "REVERSE_HOLO_ELIGIBLE_RARITIES",
    "REVERSE_HOLO_ESTIMATE_RATIO",
    "REVERSE_HOLO_PLACEMENTS",
    "REVERSE_HOLO_ID_SUFFIX",
    "SORT_OPTIONS",
    "DEFAULT_SORT_BY",
    "COMPLETE_SET_MIN_CARDS",
    "RARITY_ORDER",
    "TYPE_ORDER",
    "MONGO_URI",
    "MONGO_DATABASE",
    "MONGO_BINDERS_COLLECTION",
    "PERSISTENCE_TIMEOUT_SECONDS",
    "PERSISTENCE_MAX_WORKERS",
]
