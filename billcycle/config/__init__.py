"""Configuration package."""

from billcycle.config.settings import (
    AppSettings,
    CacheSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CacheSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
