from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from utils.binder_errors import InvalidGridSize
from utils.binder_models import BinderSettings
from utils.constants import (
    CONFIG_FILE,
    DEFAULT_GRID_SIZE,
    DEFAULT_MAX_PAGES,
    DEFAULT_MIN_PAGES,
    DEFAULT_PAGE_COUNT,
    DEFAULT_SORT_BY,
)
from utils.card_sorting import is_valid_sort_option
from utils.grid_config import resolve_grid_config


class SettingsService:
    """Loads and persists binder preferences."""

    def __init__(self, settings_path: Path | None = None) -> None:
        self.settings_path = settings_path or CONFIG_FILE

    def load(self) -> dict[str, Any]:
        if not self.settings_path.exists():
            return {}
        try:
            with self.settings_path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            logger.warning(f"Failed to load binder settings: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, Any]) -> None:
        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with self.settings_path.open("w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
        except OSError as exc:
            logger.warning(f"Unable to persist binder settings: {exc}")

    @staticmethod
    def coerce_bool(value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    @staticmethod
    def clamp_page_count(value: Any, *, default: int, min_pages: int, max_pages: int) -> int:
        try:
            pages = int(float(value))
        except (TypeError, ValueError):
            pages = default
        return max(min_pages, min(pages, max_pages))

    def build_binder_settings(
        self,
        settings: dict[str, Any] | None = None,
        *,
        strict: bool = False,
    ) -> BinderSettings:
        """
        Build sanitized binder settings from persisted or user-submitted values.

        Args:
            settings: Raw values keyed by gridSize/pageCount/minPages/maxPages/autoSort/sortBy
            strict: Raise InvalidGridSize for unknown grids instead of using the default

        Returns:
            BinderSettings with page bounds ordered and the page count inside them
        """
        settings = settings or {}
        grid_size = settings.get("gridSize", DEFAULT_GRID_SIZE)
        try:
            grid_size = resolve_grid_config(grid_size, strict=True).id
        except InvalidGridSize:
            if strict:
                raise
            logger.warning(f"Ignoring unknown grid size {grid_size!r} in settings")
            grid_size = DEFAULT_GRID_SIZE

        min_pages = self.clamp_page_count(
            settings.get("minPages", DEFAULT_MIN_PAGES),
            default=DEFAULT_MIN_PAGES,
            min_pages=1,
            max_pages=DEFAULT_MAX_PAGES,
        )
        max_pages = self.clamp_page_count(
            settings.get("maxPages", DEFAULT_MAX_PAGES),
            default=DEFAULT_MAX_PAGES,
            min_pages=min_pages,
            max_pages=DEFAULT_MAX_PAGES,
        )
        page_count = self.clamp_page_count(
            settings.get("pageCount", DEFAULT_PAGE_COUNT),
            default=DEFAULT_PAGE_COUNT,
            min_pages=min_pages,
            max_pages=max_pages,
        )
        sort_by = settings.get("sortBy", DEFAULT_SORT_BY)
        if not is_valid_sort_option(sort_by):
            logger.warning(f"Ignoring unknown sort option {sort_by!r} in settings")
            sort_by = DEFAULT_SORT_BY
        return BinderSettings(
            grid_size=grid_size,
            page_count=page_count,
            min_pages=min_pages,
            max_pages=max_pages,
            auto_sort=self.coerce_bool(settings.get("autoSort", False)),
            sort_by=sort_by,
        )

    def load_binder_settings(self) -> BinderSettings:
        """Default settings for new binders, read from the config file."""
        data = self.load()
        return self.build_binder_settings(data.get("binder") or {})

    def save_binder_settings(self, settings: BinderSettings) -> None:
        data = self.load()
        data["binder"] = settings.to_document()
        self.save(data)

    def include_reverse_holos(self) -> bool:
        return self.coerce_bool(self.load().get("includeReverseHolos", False))


_default_service: SettingsService | None = None


def get_settings_service() -> SettingsService:
    global _default_service
    if _default_service is None:
        _default_service = SettingsService()
    return _default_service


def reset_settings_service() -> None:
    global _default_service
    _default_service = None


__all__ = ["SettingsService", "get_settings_service", "reset_settings_service"]
