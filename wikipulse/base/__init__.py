# ==============================================================================
# Base Abstract Classes
# ==============================================================================
"""
Abstract base classes defining the ports of the telemetry engine.

- Cache: key/value persistence for the analytics stores
- ContextProbe: source of device and page context
"""

from wikipulse.base.cache import Cache, CacheError, CorruptValueError
from wikipulse.base.context_probe import ContextProbe, PageContext

__all__ = [
    "Cache",
    "CacheError",
    "ContextProbe",
    "CorruptValueError",
    "PageContext",
]
