# ==============================================================================
# Core Domain Logic
# ==============================================================================
"""
Pure domain logic with no external dependencies.

This module contains:
- Domain models (AnalyticsEvent, Session, EventType, report models)
- Session processing logic (timeout detection, closing)
- Content and recommendation counter update rules
- The metrics aggregation pipeline and insight rules

All code here is storage-agnostic and easily unit-testable.
"""

from wikipulse.core.models import (
    AnalyticsEvent,
    ContentItem,
    ContentType,
    EventMetadata,
    EventType,
    Session,
)
from wikipulse.core.session_processor import SessionProcessor

__all__ = [
    "AnalyticsEvent",
    "ContentItem",
    "ContentType",
    "EventMetadata",
    "EventType",
    "Session",
    "SessionProcessor",
]
