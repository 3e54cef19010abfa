"""Configuration package."""

from budgt.config.settings import (
    LedgerSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "LedgerSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
