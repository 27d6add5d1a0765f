# ==============================================================================
# Shared Test Fixtures
# ==============================================================================
"""
Pytest fixtures shared across all test modules.

Provides:
- fakeredis-backed ValkeyCache and a tmp_path-backed FileCache
- A manual clock so session timeouts and timeframes run on virtual time
- AnalyticsStore, SessionManager, EventRecorder and AnalyticsReporter wired
  to the same fake backend
"""

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest

from wikipulse.core.models import AnalyticsEvent, EventMetadata, EventType, Session
from wikipulse.infrastructure.cache import FileCache, ValkeyCache
from wikipulse.infrastructure.device import StaticContextProbe
from wikipulse.infrastructure.stores import AnalyticsStore
from wikipulse.tracking import AnalyticsReporter, EventRecorder, SessionManager

# Wednesday, mid-afternoon UTC
START_TIME = datetime(2024, 5, 15, 14, 0, tzinfo=timezone.utc)


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, now: datetime = START_TIME):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_event(
    event_type: EventType,
    timestamp: datetime = START_TIME,
    user_id: str = "user_a",
    session_id: str | None = "session_a",
    page: str = "/",
    event_id: str | None = None,
    **metadata,
) -> AnalyticsEvent:
    """Build an event directly, bypassing the recorder."""
    return AnalyticsEvent(
        id=event_id or f"event_{event_type.value}_{timestamp.timestamp()}_{user_id}",
        session_id=session_id,
        user_id=user_id,
        type=event_type,
        timestamp=timestamp,
        page=page,
        metadata=EventMetadata(**metadata),
    )


def make_session(
    session_id: str = "session_a",
    user_id: str = "user_a",
    start_time: datetime = START_TIME,
    duration: int | None = 60,
    page_views: int = 1,
    exit_page: str | None = None,
) -> Session:
    """Build a closed session directly."""
    return Session(
        session_id=session_id,
        user_id=user_id,
        start_time=start_time,
        end_time=start_time + timedelta(seconds=duration) if duration is not None else None,
        duration=duration,
        page_views=page_views,
        exit_page=exit_page,
        last_activity=start_time,
    )


@pytest.fixture()
def fake_redis():
    """A clean fakeredis instance for each test.

    Uses decode_responses=True to match the real ValkeyCache behavior.
    """
    server = fakeredis.FakeServer()
    client = fakeredis.FakeRedis(server=server, decode_responses=True)
    yield client
    client.flushall()
    client.close()


@pytest.fixture()
def fake_cache(fake_redis):
    """A ValkeyCache with its internal client replaced by fakeredis.

    This avoids needing a real Valkey/Redis server for unit tests while
    exercising the full ValkeyCache API surface.
    """
    cache = ValkeyCache.__new__(ValkeyCache)
    cache._client = fake_redis
    cache._url = "redis://fake:6379"
    return cache


@pytest.fixture()
def file_cache(tmp_path):
    """A FileCache writing into a per-test temporary directory."""
    return FileCache(tmp_path / "data")


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def probe():
    """A desktop Chrome probe on the home page."""
    return StaticContextProbe(
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
        ),
        platform="Win32",
        screen_width=1920,
        screen_height=1080,
        viewport_width=1280,
        viewport_height=800,
        url="https://wiki.example.com/",
    )


@pytest.fixture()
def store(fake_cache):
    """An AnalyticsStore on fakeredis with small caps."""
    return AnalyticsStore(fake_cache, key_prefix="test:", max_events=50, max_sessions=20, max_searches=10)


@pytest.fixture()
def sessions(store, probe, clock):
    return SessionManager(store, probe, clock=clock, timeout_minutes=30)


@pytest.fixture()
def recorder(store, sessions, probe, clock):
    return EventRecorder(store, sessions, probe, clock=clock)


@pytest.fixture()
def reporter(store, clock):
    return AnalyticsReporter(store, clock=clock, timezone="UTC", trending_threshold=3)
