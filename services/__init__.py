"""
Services package - Business logic layer.

This package exposes binder services while avoiding heavy imports at module load time.
"""

from importlib import import_module
from typing import Any

__all__ = [
    "BinderService",
    "MissingOverlay",
    "PlacementEngine",
    "SettingsService",
    "get_binder_service",
    "get_settings_service",
]

_LAZY_MODULES = {
    "BinderService": "services.binder_service",
    "get_binder_service": "services.binder_service",
    "MissingOverlay": "services.missing_overlay",
    "PlacementEngine": "services.placement_engine",
    "SettingsService": "services.settings_service",
    "get_settings_service": "services.settings_service",
}


def __getattr__(name: str) -> Any:
    if name in _LAZY_MODULES:
        module = import_module(_LAZY_MODULES[name])
        value = getattr(module, name)
        globals()[name] = value
        return value

    raise AttributeError(f"module 'services' has no attribute '{name}'")
