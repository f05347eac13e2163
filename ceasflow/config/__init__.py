"""Configuration package."""

from ceasflow.config.settings import (
    AppSettings,
    LedgerSettings,
    Settings,
    SpreadsheetSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "Settings",
    "SpreadsheetSettings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
