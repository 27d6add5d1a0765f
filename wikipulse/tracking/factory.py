# ==============================================================================
# Tracking Context Factory
# ==============================================================================
"""
Wires the store, session manager, recorder and reporter from settings.

Every collaborator is injectable so tests can supply a fake backend, a
static probe and a manual clock.
"""

from dataclasses import dataclass

from wikipulse.base.cache import Cache
from wikipulse.base.context_probe import ContextProbe
from wikipulse.core.models import utcnow
from wikipulse.infrastructure.device import get_context_probe
from wikipulse.infrastructure.stores import AnalyticsStore, get_analytics_store
from wikipulse.tracking.recorder import EventRecorder
from wikipulse.tracking.reporter import AnalyticsReporter
from wikipulse.tracking.sessions import Clock, SessionManager
from wikipulse.utils.config import Settings, get_settings


@dataclass
class Tracking:
    """Everything needed to record and report for one device."""

    store: AnalyticsStore
    sessions: SessionManager
    recorder: EventRecorder
    reporter: AnalyticsReporter

    def close(self) -> None:
        self.store.close()


def build_tracking(
    settings: Settings | None = None,
    cache: Cache | None = None,
    probe: ContextProbe | None = None,
    clock: Clock = utcnow,
) -> Tracking:
    """
    Build a Tracking context.

    Args:
        settings: Application settings (default: cached settings)
        cache: Storage backend (default: from settings)
        probe: Context probe (default: from DEVICE_* settings)
        clock: Returns the current time

    Returns:
        Wired Tracking context
    """
    settings = settings or get_settings()
    analytics = settings.analytics
    store = get_analytics_store(settings, cache=cache)
    probe = probe or get_context_probe()

    sessions = SessionManager(
        store,
        probe,
        clock=clock,
        timeout_minutes=analytics.session_timeout_minutes,
        flush_expired=analytics.flush_expired_sessions,
    )
    recorder = EventRecorder(
        store,
        sessions,
        probe,
        clock=clock,
        emit_session_events=analytics.emit_session_events,
    )
    reporter = AnalyticsReporter(
        store,
        clock=clock,
        timezone=analytics.timezone,
        session_timeout_minutes=analytics.session_timeout_minutes,
        trending_threshold=analytics.trending_threshold,
        trending_window_hours=analytics.trending_window_hours,
    )
    return Tracking(store=store, sessions=sessions, recorder=recorder, reporter=reporter)
