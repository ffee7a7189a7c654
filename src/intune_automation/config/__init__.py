"""Configuration helpers for the Intune automations."""

from .settings import (
    DEFAULT_GRAPH_SCOPES,
    REQUIRED_APP_ROLES,
    Settings,
    SettingsManager,
)

__all__ = [
    "DEFAULT_GRAPH_SCOPES",
    "REQUIRED_APP_ROLES",
    "Settings",
    "SettingsManager",
]
