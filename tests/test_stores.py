# ==============================================================================
# Tests for Bounded Analytics Stores
# ==============================================================================
"""
Tests for BoundedRecordStore, RecordSlot, TextSlot and AnalyticsStore.

Covers:
- Newest-first ordering and cap eviction
- Corrupted and unreadable documents degrading to empty reads
- Failed writes reported as False instead of raising
- Clearing activity while keeping consent and identity
"""

from datetime import timedelta

from conftest import START_TIME, make_event, make_session

from wikipulse.base.cache import CacheError
from wikipulse.core.models import AnalyticsEvent, Consent, EventType, Session
from wikipulse.infrastructure.stores import AnalyticsStore, BoundedRecordStore, RecordSlot


class FailingCache:
    """A cache whose every operation fails like an unreachable backend."""

    def get(self, key):
        raise CacheError("backend down")

    def set(self, key, value):
        raise CacheError("backend down")

    def delete(self, key):
        raise CacheError("backend down")

    def ping(self):
        return False

    def close(self):
        pass


# ==============================================================================
# BoundedRecordStore
# ==============================================================================


class TestBoundedRecordStore:
    """Tests for the newest-first record list."""

    def test_empty_when_missing(self, fake_cache):
        """A key that was never written loads as an empty list."""
        records = BoundedRecordStore(fake_cache, "test:events", Session)
        assert records.load_all() == []
        assert len(records) == 0

    def test_append_puts_newest_first(self, fake_cache):
        """Appended records come back newest first."""
        records = BoundedRecordStore(fake_cache, "test:sessions", Session)
        records.append(make_session("s1"))
        records.append(make_session("s2"))
        assert [s.session_id for s in records.load_all()] == ["s2", "s1"]

    def test_cap_evicts_oldest(self, fake_cache):
        """Once the cap is exceeded the oldest records are dropped."""
        records = BoundedRecordStore(fake_cache, "test:sessions", Session, max_records=3)
        for i in range(5):
            assert records.append(make_session(f"s{i}"))

        stored = records.load_all()
        assert len(stored) == 3
        assert [s.session_id for s in stored] == ["s4", "s3", "s2"]

    def test_replace_all_truncates(self, fake_cache):
        """replace_all applies the cap to the new list."""
        records = BoundedRecordStore(fake_cache, "test:sessions", Session, max_records=2)
        records.replace_all([make_session(f"s{i}") for i in range(4)])
        assert [s.session_id for s in records.load_all()] == ["s0", "s1"]

    def test_corrupted_json_loads_empty(self, fake_cache, fake_redis):
        """Invalid JSON is discarded and the store behaves as empty."""
        fake_redis.set("test:sessions", "{not json")
        records = BoundedRecordStore(fake_cache, "test:sessions", Session)
        assert records.load_all() == []

    def test_corrupted_json_is_overwritten_on_append(self, fake_cache, fake_redis):
        """Appending to a corrupted document starts a fresh list."""
        fake_redis.set("test:sessions", "{not json")
        records = BoundedRecordStore(fake_cache, "test:sessions", Session)
        assert records.append(make_session("s1"))
        assert [s.session_id for s in records.load_all()] == ["s1"]

    def test_wrong_shape_loads_empty(self, fake_cache, fake_redis):
        """A JSON document that is not a list is discarded."""
        fake_redis.set("test:sessions", '{"session_id": "s1"}')
        records = BoundedRecordStore(fake_cache, "test:sessions", Session)
        assert records.load_all() == []

    def test_invalid_records_load_empty(self, fake_cache, fake_redis):
        """A list of records that fail validation is discarded."""
        fake_redis.set("test:sessions", '[{"session_id": "s1"}]')
        records = BoundedRecordStore(fake_cache, "test:sessions", Session)
        assert records.load_all() == []

    def test_failed_backend_reports_false(self):
        """Reads degrade to empty and writes return False on backend failure."""
        records = BoundedRecordStore(FailingCache(), "test:sessions", Session)
        assert records.load_all() == []
        assert records.append(make_session("s1")) is False
        assert records.replace_all([]) is False
        assert records.clear() is False

    def test_round_trips_datetimes(self, fake_cache):
        """Timestamps survive the JSON round trip."""
        records = BoundedRecordStore(fake_cache, "test:events", AnalyticsEvent)
        event = make_event(EventType.PAGE_VIEW, timestamp=START_TIME + timedelta(minutes=5))
        records.append(event)
        assert records.load_all()[0].timestamp == event.timestamp


# ==============================================================================
# Slots
# ==============================================================================


class TestRecordSlot:
    """Tests for single-record slots."""

    def test_save_and_load(self, fake_cache):
        slot = RecordSlot(fake_cache, "test:consent", Consent)
        assert slot.load() is None
        assert slot.save(Consent(granted=False, revoked_at=START_TIME))
        loaded = slot.load()
        assert loaded.granted is False
        assert loaded.revoked_at == START_TIME

    def test_clear(self, fake_cache):
        slot = RecordSlot(fake_cache, "test:consent", Consent)
        slot.save(Consent())
        assert slot.clear()
        assert slot.load() is None

    def test_invalid_record_loads_none(self, fake_cache, fake_redis):
        fake_redis.set("test:current-session", '{"user_id": 5}')
        slot = RecordSlot(fake_cache, "test:current-session", Session)
        assert slot.load() is None


# ==============================================================================
# AnalyticsStore
# ==============================================================================


class TestAnalyticsStore:
    """Tests for the grouped store context."""

    def test_keys_use_prefix(self, store, fake_redis):
        """Every logical store is persisted under the configured prefix."""
        store.sessions.append(make_session())
        store.user_id.save("user_a")
        assert fake_redis.exists("test:sessions")
        assert fake_redis.exists("test:user-id")

    def test_caps_from_constructor(self, fake_cache):
        store = AnalyticsStore(fake_cache, max_events=5, max_sessions=4, max_searches=3)
        assert store.events.max_records == 5
        assert store.sessions.max_records == 4
        assert store.searches.max_records == 3
        assert store.content_metrics.max_records is None

    def test_clear_activity_keeps_consent_and_identity(self, store):
        """Clearing wipes activity but not consent or the user id."""
        store.events.append(make_event(EventType.PAGE_VIEW))
        store.sessions.append(make_session())
        store.current_session.save(make_session(duration=None))
        store.consent.save(Consent(granted=False))
        store.user_id.save("user_a")

        assert store.clear_activity()

        assert store.events.load_all() == []
        assert store.sessions.load_all() == []
        assert store.current_session.load() is None
        assert store.consent.load().granted is False
        assert store.user_id.load() == "user_a"

    def test_ping(self, store):
        assert store.ping() is True
        assert AnalyticsStore(FailingCache()).ping() is False
