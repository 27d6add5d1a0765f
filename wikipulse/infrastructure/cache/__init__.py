# ==============================================================================
# Cache Infrastructure
# ==============================================================================
"""
Cache implementations for the ports-and-adapters architecture.

Available implementations:
- FileCache: one JSON file per key in a local data directory (default)
- ValkeyCache: Valkey/Redis-based cache with JSON serialization
"""

from wikipulse.infrastructure.cache.file import FileCache
from wikipulse.infrastructure.cache.valkey import (
    ValkeyCache,
    check_valkey_connection,
)

__all__ = [
    "FileCache",
    "ValkeyCache",
    "check_valkey_connection",
]
