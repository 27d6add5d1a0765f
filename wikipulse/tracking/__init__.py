# ==============================================================================
# Tracking Services
# ==============================================================================
"""
Store-backed services of the telemetry engine.

- SessionManager: current-session slot and session log
- EventRecorder: write path (track and its wrappers, consent)
- AnalyticsReporter: read path (metrics, reports, export/import/clear)
- build_tracking: wire all three from settings
"""

from wikipulse.tracking.factory import Tracking, build_tracking
from wikipulse.tracking.recorder import EventRecorder
from wikipulse.tracking.reporter import AnalyticsReporter
from wikipulse.tracking.sessions import SessionManager

__all__ = [
    "AnalyticsReporter",
    "EventRecorder",
    "SessionManager",
    "Tracking",
    "build_tracking",
]
