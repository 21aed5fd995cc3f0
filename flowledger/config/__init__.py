"""Configuration package."""

from flowledger.config.settings import (
    AppSettings,
    CryptoSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CryptoSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
