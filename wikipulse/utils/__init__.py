# ==============================================================================
# Wikipulse Utilities
# ==============================================================================
"""
Shared utilities for wikipulse.

This module exports configuration, id generation and retry helpers.
"""

from wikipulse.utils.config import (
    AnalyticsSettings,
    DeviceSettings,
    Settings,
    StorageSettings,
    ValkeySettings,
    get_settings,
)
from wikipulse.utils.ids import generate_id
from wikipulse.utils.retry import retry_light

__all__ = [
    # Config
    "AnalyticsSettings",
    "DeviceSettings",
    "Settings",
    "StorageSettings",
    "ValkeySettings",
    "get_settings",
    # Ids
    "generate_id",
    # Retry
    "retry_light",
]
