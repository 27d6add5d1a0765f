# ==============================================================================
# Bounded Analytics Stores
# ==============================================================================
"""
Logical stores persisted as JSON documents through a Cache backend.

Provides:
- BoundedRecordStore: newest-first list of records with an optional cap
- RecordSlot: a single optional record (current session, consent)
- TextSlot: a single optional string (persisted user id)
- AnalyticsStore: every logical store behind one context object

Storage is best-effort. Backend failures are logged at WARNING and reported
as a False outcome (or an empty read); they never raise to the caller.
Corrupted documents are logged and treated as empty.
"""

import logging
from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from wikipulse.base.cache import Cache, CacheError, CorruptValueError
from wikipulse.core.models import (
    AnalyticsEvent,
    Consent,
    ContentMetrics,
    RecommendationMetrics,
    SearchQuery,
    Session,
)
from wikipulse.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

# Logical store names (appended to the configured key prefix)
EVENTS_KEY = "events"
SESSIONS_KEY = "sessions"
CURRENT_SESSION_KEY = "current-session"
CONTENT_METRICS_KEY = "content-metrics"
SEARCHES_KEY = "searches"
RECOMMENDATIONS_KEY = "recommendations"
CONSENT_KEY = "consent"
USER_ID_KEY = "user-id"


class _Unreadable(Exception):
    """The backend could not be read; the document state is unknown."""


class _JsonDocument:
    """Shared read/write plumbing for one key."""

    def __init__(self, cache: Cache, key: str):
        self._cache = cache
        self.key = key

    def _read(self) -> Any | None:
        """
        Read the raw document.

        Returns:
            Decoded value, or None when missing or corrupted

        Raises:
            _Unreadable: If the backend failed
        """
        try:
            return self._cache.get(self.key)
        except CorruptValueError as e:
            logger.warning("Discarding corrupted data for %s: %s", self.key, e)
            return None
        except CacheError as e:
            logger.warning("Failed to read %s: %s", self.key, e)
            raise _Unreadable(self.key) from e

    def _write(self, value: Any) -> bool:
        try:
            self._cache.set(self.key, value)
            return True
        except CacheError as e:
            logger.warning("Failed to write %s: %s", self.key, e)
            return False

    def clear(self) -> bool:
        """Remove the document. Returns False if the backend failed."""
        try:
            self._cache.delete(self.key)
            return True
        except CacheError as e:
            logger.warning("Failed to clear %s: %s", self.key, e)
            return False


class BoundedRecordStore(_JsonDocument, Generic[M]):
    """
    Newest-first list of records.

    New records go to the front; when the cap is exceeded the oldest
    records at the tail are dropped.
    """

    def __init__(
        self,
        cache: Cache,
        key: str,
        model: Type[M],
        max_records: int | None = None,
    ):
        """
        Args:
            cache: Backend holding the document
            key: Full (prefixed) key of the document
            model: Pydantic model of one record
            max_records: Retention cap, or None for an unbounded list
        """
        super().__init__(cache, key)
        self._model = model
        self.max_records = max_records

    def _decode(self, raw: Any) -> list[M]:
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Discarding %s: expected a list, got %s", self.key, type(raw).__name__)
            return []
        try:
            return [self._model.model_validate(item) for item in raw]
        except ValidationError as e:
            logger.warning("Discarding %s: %d invalid record(s)", self.key, e.error_count())
            return []

    def load_all(self) -> list[M]:
        """All records, newest first. Empty when missing, corrupted or unreadable."""
        try:
            return self._decode(self._read())
        except _Unreadable:
            return []

    def append(self, record: M) -> bool:
        """
        Prepend a record and truncate to the cap.

        Returns:
            True if the record was persisted
        """
        try:
            records = self._decode(self._read())
        except _Unreadable:
            return False
        records.insert(0, record)
        return self.replace_all(records)

    def replace_all(self, records: list[M]) -> bool:
        """Overwrite the whole list (truncated to the cap)."""
        if self.max_records is not None:
            records = records[: self.max_records]
        return self._write([record.model_dump(mode="json") for record in records])

    def __len__(self) -> int:
        return len(self.load_all())


class RecordSlot(_JsonDocument, Generic[M]):
    """A single optional record."""

    def __init__(self, cache: Cache, key: str, model: Type[M]):
        super().__init__(cache, key)
        self._model = model

    def load(self) -> Optional[M]:
        try:
            raw = self._read()
        except _Unreadable:
            return None
        if raw is None:
            return None
        try:
            return self._model.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding %s: %d invalid field(s)", self.key, e.error_count())
            return None

    def save(self, record: M) -> bool:
        return self._write(record.model_dump(mode="json"))


class TextSlot(_JsonDocument):
    """A single optional string."""

    def load(self) -> Optional[str]:
        try:
            raw = self._read()
        except _Unreadable:
            return None
        if raw is None:
            return None
        if not isinstance(raw, str):
            logger.warning("Discarding %s: expected a string", self.key)
            return None
        return raw

    def save(self, value: str) -> bool:
        return self._write(value)


class AnalyticsStore:
    """
    Every logical store of one device, sharing one backend and key prefix.

    This is the context object handed to the session manager, recorder and
    reporter; nothing is held in module globals.
    """

    def __init__(
        self,
        cache: Cache,
        key_prefix: str = "wikipulse:",
        max_events: int = 10_000,
        max_sessions: int = 1_000,
        max_searches: int = 500,
    ):
        self.cache = cache
        self.key_prefix = key_prefix

        self.events = BoundedRecordStore(cache, self._key(EVENTS_KEY), AnalyticsEvent, max_events)
        self.sessions = BoundedRecordStore(cache, self._key(SESSIONS_KEY), Session, max_sessions)
        self.searches = BoundedRecordStore(cache, self._key(SEARCHES_KEY), SearchQuery, max_searches)
        self.content_metrics = BoundedRecordStore(
            cache, self._key(CONTENT_METRICS_KEY), ContentMetrics
        )
        self.recommendations = BoundedRecordStore(
            cache, self._key(RECOMMENDATIONS_KEY), RecommendationMetrics
        )
        self.current_session = RecordSlot(cache, self._key(CURRENT_SESSION_KEY), Session)
        self.consent = RecordSlot(cache, self._key(CONSENT_KEY), Consent)
        self.user_id = TextSlot(cache, self._key(USER_ID_KEY))

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}{name}"

    @property
    def activity_stores(self) -> list[_JsonDocument]:
        """Stores wiped by a reset (consent and identity are kept)."""
        return [
            self.events,
            self.sessions,
            self.current_session,
            self.content_metrics,
            self.searches,
            self.recommendations,
        ]

    def clear_activity(self) -> bool:
        """Clear every activity store. Returns False if any clear failed."""
        results = [store.clear() for store in self.activity_stores]
        return all(results)

    def ping(self) -> bool:
        return self.cache.ping()

    def close(self) -> None:
        self.cache.close()


def get_analytics_store(settings: Settings | None = None, cache: Cache | None = None) -> AnalyticsStore:
    """
    Build an AnalyticsStore from settings.

    Args:
        settings: Application settings (default: cached settings)
        cache: Backend to use instead of the configured one

    Returns:
        Configured AnalyticsStore
    """
    settings = settings or get_settings()
    if cache is None:
        if settings.storage.backend == "valkey":
            from wikipulse.infrastructure.cache.valkey import ValkeyCache

            cache = ValkeyCache(settings.valkey.url)
        else:
            from wikipulse.infrastructure.cache.file import FileCache

            cache = FileCache(settings.storage.data_dir_path)

    analytics = settings.analytics
    return AnalyticsStore(
        cache,
        key_prefix=analytics.key_prefix,
        max_events=analytics.max_events,
        max_sessions=analytics.max_sessions,
        max_searches=analytics.max_searches,
    )
