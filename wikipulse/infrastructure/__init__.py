# ==============================================================================
# Infrastructure Adapters
# ==============================================================================
"""
Adapters for storage and device context (ports-and-adapters architecture).

This module contains concrete implementations of the base ports:
- cache/ - Cache adapters (local JSON files, Valkey/Redis)
- stores.py - Bounded analytics stores on top of a cache
- device.py - Static context probe and user agent parsing
"""

from wikipulse.infrastructure.cache import (
    FileCache,
    ValkeyCache,
    check_valkey_connection,
)
from wikipulse.infrastructure.device import StaticContextProbe, get_context_probe
from wikipulse.infrastructure.stores import AnalyticsStore, get_analytics_store

__all__ = [
    # Cache
    "FileCache",
    "ValkeyCache",
    "check_valkey_connection",
    # Stores
    "AnalyticsStore",
    "get_analytics_store",
    # Device
    "StaticContextProbe",
    "get_context_probe",
]
