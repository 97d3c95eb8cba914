"""Configuration loading for the dashboard."""

from .settings import (
    DEFAULT_SETTINGS_PATH,
    DashboardSettings,
    SettingsError,
    find_project_root,
    load_dashboard_settings,
    load_settings,
    parse_dashboard_settings,
)

__all__ = [
    "DEFAULT_SETTINGS_PATH",
    "DashboardSettings",
    "SettingsError",
    "find_project_root",
    "load_dashboard_settings",
    "load_settings",
    "parse_dashboard_settings",
]
