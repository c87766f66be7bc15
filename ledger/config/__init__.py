"""Configuration package."""

from ledger.config.settings import (
    AppSettings,
    ScheduleSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ScheduleSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
