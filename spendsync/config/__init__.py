"""Configuration package."""

from spendsync.config.settings import (
    HOUR_MS,
    MINUTE_MS,
    ApiSettings,
    AppSettings,
    CacheSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "HOUR_MS",
    "MINUTE_MS",
    "ApiSettings",
    "AppSettings",
    "CacheSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
