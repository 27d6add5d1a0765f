# ==============================================================================
# Event Recorder
# ==============================================================================
"""
Write path of the telemetry engine.

track() gates on consent, resolves the current session, builds and
enriches the event, appends it to the event log and keeps the side records
(session counters, content metrics, search log, recommendation metrics)
in step with it in the same call.

The track_* wrappers are thin constructors over track(). Content wrappers
accept either a catalog ContentItem or a bare content id.
"""

import logging
from typing import Any, Optional, Union

from pydantic import ValidationError

from wikipulse.base.context_probe import ContextProbe, PageContext
from wikipulse.core.content_metrics import (
    apply_click,
    apply_content_action,
    apply_impression,
    content_actions,
)
from wikipulse.core.models import (
    AnalyticsEvent,
    Consent,
    ContentItem,
    ContentType,
    Difficulty,
    EventMetadata,
    EventType,
    SearchQuery,
    Session,
)
from wikipulse.infrastructure.stores import AnalyticsStore
from wikipulse.tracking.sessions import Clock, SessionManager
from wikipulse.utils.ids import generate_id

logger = logging.getLogger(__name__)

MetadataInput = Union[EventMetadata, dict[str, Any], None]
ContentRef = Union[ContentItem, str]


def _metadata_dict(metadata: MetadataInput) -> dict[str, Any]:
    if metadata is None:
        return {}
    if isinstance(metadata, EventMetadata):
        return metadata.model_dump(exclude_none=True)
    return {key: value for key, value in metadata.items() if value is not None}


def _environment(context: PageContext) -> dict[str, Any]:
    environment: dict[str, Any] = {
        "user_agent": context.user_agent,
        "url": context.url,
        "referrer": context.referrer,
        "viewport": context.viewport.model_dump() if context.viewport else None,
    }
    return {key: value for key, value in environment.items() if value is not None}


def _content_fields(
    content: ContentRef, content_type: ContentType, title: Optional[str] = None
) -> dict[str, Any]:
    """Metadata describing a piece of content from a catalog item or an id."""
    if isinstance(content, ContentItem):
        fields: dict[str, Any] = {
            "content_type": content.content_type,
            "content_id": content.id,
            "content_title": title or content.title,
            "section": content.section,
            "tags": content.tags or None,
            "difficulty": content.difficulty,
        }
    else:
        fields = {"content_type": content_type, "content_id": content, "content_title": title}
    return {key: value for key, value in fields.items() if value is not None}


class EventRecorder:
    """
    Records events for one device.

    Example:
        recorder = EventRecorder(store, SessionManager(store, probe), probe)
        recorder.track_article_view("python-basics", title="Python Basics")
    """

    def __init__(
        self,
        store: AnalyticsStore,
        sessions: SessionManager,
        probe: ContextProbe,
        clock: Clock | None = None,
        emit_session_events: bool = True,
    ):
        """
        Initialize the recorder.

        Args:
            store: Analytics store receiving events and side records
            sessions: Session manager for the same store
            probe: Source of page context for event enrichment
            clock: Returns the current time (default: the session manager's clock)
            emit_session_events: Record session_start when a session is created
        """
        self.store = store
        self.sessions = sessions
        self.probe = probe
        self.clock = clock or sessions.clock
        self.emit_session_events = emit_session_events

    # ==========================================================================
    # Consent
    # ==========================================================================

    def has_consent(self) -> bool:
        """Whether tracking is allowed. Consent is granted unless revoked."""
        consent = self.store.consent.load()
        return consent is None or consent.granted

    def get_consent(self) -> Consent:
        return self.store.consent.load() or Consent()

    def set_consent(self, granted: bool) -> bool:
        """
        Grant or revoke tracking consent.

        Returns:
            True if the new consent state was persisted
        """
        consent = self.get_consent()
        now = self.clock()
        consent.granted = granted
        if granted:
            consent.granted_at = now
        else:
            consent.revoked_at = now
        logger.info("Analytics consent %s", "granted" if granted else "revoked")
        return self.store.consent.save(consent)

    # ==========================================================================
    # Core Tracking
    # ==========================================================================

    def track(
        self,
        event_type: EventType,
        metadata: MetadataInput = None,
        *,
        user_id: Optional[str] = None,
        page: Optional[str] = None,
    ) -> Optional[AnalyticsEvent]:
        """
        Record one event.

        Args:
            event_type: Kind of event
            metadata: Event details (EventMetadata or a plain dict)
            user_id: Identity to attribute the event to (default: the session's user)
            page: Page path (default: the probe's current page)

        Returns:
            The recorded event, or None when consent is revoked or the
            metadata does not validate. Persistence is best-effort: a failed
            write is logged, not raised.
        """
        if not self.has_consent():
            logger.debug("Consent revoked, dropping %s event", event_type.value)
            return None

        # Nothing is written, not even a new session, for metadata that will not validate
        try:
            details = EventMetadata.model_validate(_metadata_dict(metadata))
        except ValidationError as e:
            logger.warning(
                "Dropping %s event: %d invalid metadata field(s)",
                event_type.value,
                e.error_count(),
            )
            return None

        session, created = self.sessions.get_or_create_session(user_id)
        if created and self.emit_session_events and event_type != EventType.SESSION_START:
            self._record(EventType.SESSION_START, session, None, page)

        event = self._record(event_type, session, details, page)

        if event_type == EventType.PAGE_VIEW:
            self.sessions.record_page_view(session, event.page)
        else:
            self.sessions.touch(session)
        return event

    def _build_event(
        self,
        event_type: EventType,
        session_id: Optional[str],
        user_id: str,
        metadata: MetadataInput,
        page: Optional[str],
    ) -> AnalyticsEvent:
        now = self.clock()
        context = self.probe.page_context()
        # Caller-supplied values win over environment context
        enriched = {**_environment(context), **_metadata_dict(metadata)}
        return AnalyticsEvent(
            id=generate_id("event", now),
            session_id=session_id,
            user_id=user_id,
            type=event_type,
            timestamp=now,
            page=page or context.path or "/",
            metadata=EventMetadata.model_validate(enriched),
        )

    def _record(
        self,
        event_type: EventType,
        session: Session,
        metadata: MetadataInput,
        page: Optional[str],
    ) -> AnalyticsEvent:
        event = self._build_event(event_type, session.session_id, session.user_id, metadata, page)
        self._append(event)
        self._update_side_records(event)
        return event

    def _append(self, event: AnalyticsEvent) -> bool:
        if not self.store.events.append(event):
            logger.warning("Event %s (%s) was not persisted", event.id, event.type.value)
            return False
        return True

    def _update_side_records(self, event: AnalyticsEvent) -> None:
        meta = event.metadata

        actions = content_actions(event)
        if actions:
            metrics = self.store.content_metrics.load_all()
            for action in actions:
                apply_content_action(
                    metrics,
                    meta.content_id,
                    meta.content_type,
                    meta.content_title or "",
                    action,
                    event.timestamp,
                    user_id=event.user_id,
                )
            self.store.content_metrics.replace_all(metrics)

        if event.type == EventType.SEARCH_PERFORM and meta.search_query:
            self.store.searches.append(
                SearchQuery(
                    query=meta.search_query,
                    timestamp=event.timestamp,
                    results_count=meta.results_count or 0,
                    user_id=event.user_id,
                )
            )

        if (
            event.type == EventType.RECOMMENDATION_CLICK
            and meta.content_id
            and meta.content_type is not None
        ):
            recommendations = self.store.recommendations.load_all()
            apply_click(
                recommendations, meta.content_id, meta.content_type, meta.result_position or 0
            )
            self.store.recommendations.replace_all(recommendations)

    # ==========================================================================
    # Session Wrappers
    # ==========================================================================

    def end_session(self) -> Optional[AnalyticsEvent]:
        """
        End the current session and record a session_end event.

        With no active session a session_end event is still recorded (with
        no session id) for the device user. A stored session that has timed
        out is flushed to the session log at the same time.
        """
        if not self.has_consent():
            logger.debug("Consent revoked, not recording session_end")
            return None

        session = self.sessions.current_session()
        if session is None:
            event = self._build_event(
                EventType.SESSION_END, None, self.sessions.resolve_user_id(), None, None
            )
            self._append(event)
            self.sessions.flush_expired_session()
            return event

        event = self._build_event(
            EventType.SESSION_END,
            session.session_id,
            session.user_id,
            None,
            session.exit_page,
        )
        self._append(event)
        self.sessions.end_session(session)
        return event

    # ==========================================================================
    # Page & Content Wrappers
    # ==========================================================================

    def track_page_view(
        self, page: Optional[str] = None, metadata: MetadataInput = None, **kwargs: Any
    ) -> Optional[AnalyticsEvent]:
        return self.track(EventType.PAGE_VIEW, metadata, page=page, **kwargs)

    def track_article_view(
        self,
        article: ContentRef,
        title: Optional[str] = None,
        section: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(article, ContentType.ARTICLE, title)
        if section:
            fields["section"] = section
        return self.track(EventType.ARTICLE_VIEW, {**fields, **_metadata_dict(metadata)}, **kwargs)

    def track_article_complete(
        self,
        article: ContentRef,
        reading_time: Optional[float] = None,
        scroll_depth: Optional[float] = None,
        title: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(article, ContentType.ARTICLE, title)
        fields.update(reading_time=reading_time, scroll_depth=scroll_depth)
        return self.track(
            EventType.ARTICLE_COMPLETE, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_tutorial_start(
        self,
        tutorial: ContentRef,
        title: Optional[str] = None,
        difficulty: Optional[Difficulty] = None,
        total_steps: Optional[int] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(tutorial, ContentType.TUTORIAL, title)
        if difficulty:
            fields["difficulty"] = difficulty
        fields["total_steps"] = total_steps
        return self.track(
            EventType.TUTORIAL_START, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_tutorial_step_complete(
        self,
        tutorial: ContentRef,
        step_id: str,
        step_number: int,
        total_steps: Optional[int] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(tutorial, ContentType.TUTORIAL)
        fields.update(step_id=step_id, step_number=step_number, total_steps=total_steps)
        return self.track(
            EventType.TUTORIAL_STEP_COMPLETE, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_tutorial_complete(
        self,
        tutorial: ContentRef,
        total_time_spent: Optional[float] = None,
        title: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(tutorial, ContentType.TUTORIAL, title)
        fields["reading_time"] = total_time_spent
        return self.track(
            EventType.TUTORIAL_COMPLETE, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_path_start(
        self,
        path: ContentRef,
        title: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(path, ContentType.PATH, title)
        return self.track(EventType.PATH_START, {**fields, **_metadata_dict(metadata)}, **kwargs)

    def track_path_item_complete(
        self,
        path: ContentRef,
        item_id: str,
        items_completed: int,
        total_items: int,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(path, ContentType.PATH)
        fields.update(item_id=item_id, item_completed=items_completed, item_total=total_items)
        return self.track(
            EventType.PATH_ITEM_COMPLETE, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_path_complete(
        self,
        path: ContentRef,
        total_time_spent: Optional[float] = None,
        title: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(path, ContentType.PATH, title)
        fields["reading_time"] = total_time_spent
        return self.track(
            EventType.PATH_COMPLETE, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    # ==========================================================================
    # Search, Code & Exercise Wrappers
    # ==========================================================================

    def track_search(
        self, query: str, results_count: int, metadata: MetadataInput = None, **kwargs: Any
    ) -> Optional[AnalyticsEvent]:
        fields = {"search_query": query, "results_count": results_count}
        return self.track(
            EventType.SEARCH_PERFORM, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_search_result_click(
        self,
        query: str,
        result_position: int,
        result_id: str,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = {
            "search_query": query,
            "result_position": result_position,
            "clicked_result_id": result_id,
        }
        return self.track(
            EventType.SEARCH_RESULT_CLICK, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_code_execute(
        self,
        language: str,
        success: bool,
        execution_time: Optional[float] = None,
        error_type: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = {
            "language": language,
            "execution_success": success,
            "execution_time": execution_time,
            "error_type": error_type,
        }
        return self.track(EventType.CODE_EXECUTE, {**fields, **_metadata_dict(metadata)}, **kwargs)

    def track_exercise_attempt(
        self,
        exercise: ContentRef,
        completed: bool,
        hints_used: int = 0,
        attempts: int = 1,
        title: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = _content_fields(exercise, ContentType.EXERCISE, title)
        fields.update(completed=completed, hints_used=hints_used, attempts=attempts)
        return self.track(
            EventType.EXERCISE_ATTEMPT, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_achievement_unlock(
        self,
        achievement_id: str,
        achievement_title: str,
        points: int,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = {
            "achievement_id": achievement_id,
            "achievement_title": achievement_title,
            "points": points,
        }
        return self.track(
            EventType.ACHIEVEMENT_UNLOCK, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    def track_error(
        self,
        error_message: str,
        error_stack: Optional[str] = None,
        context: Optional[str] = None,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = {
            "error_message": error_message,
            "error_stack": error_stack,
            "error_context": context,
        }
        return self.track(
            EventType.ERROR_OCCURRED, {**fields, **_metadata_dict(metadata)}, **kwargs
        )

    # ==========================================================================
    # Recommendation Wrappers
    # ==========================================================================

    def track_recommendation_impression(
        self, content_id: str, content_type: ContentType, position: float
    ) -> bool:
        """
        Count one impression of a recommended item. No event is recorded.

        Returns:
            True if the updated metrics were persisted (False also when
            consent is revoked)
        """
        if not self.has_consent():
            return False
        recommendations = self.store.recommendations.load_all()
        apply_impression(recommendations, content_id, content_type, position)
        return self.store.recommendations.replace_all(recommendations)

    def track_recommendation_click(
        self,
        content_id: str,
        content_type: ContentType,
        position: int,
        metadata: MetadataInput = None,
        **kwargs: Any,
    ) -> Optional[AnalyticsEvent]:
        fields = {
            "content_id": content_id,
            "content_type": content_type,
            "result_position": position,
        }
        return self.track(
            EventType.RECOMMENDATION_CLICK, {**fields, **_metadata_dict(metadata)}, **kwargs
        )
