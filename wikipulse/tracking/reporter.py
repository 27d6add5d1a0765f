# ==============================================================================
# Analytics Reporter
# ==============================================================================
"""
Read path of the telemetry engine.

Every method re-reads the store and hands a snapshot to the pure functions
in core/aggregations.py and core/insights.py, so repeated calls never see
stale state and never mutate the store. The exceptions are the snapshot
operations at the bottom (import and clear), which replace store contents.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from typing import Any, Literal, Optional

from pydantic import ValidationError

from wikipulse.core import aggregations
from wikipulse.core.insights import generate_insights, generate_recommendations
from wikipulse.core.models import (
    AggregationPeriod,
    AnalyticsEvent,
    AnalyticsReport,
    AnalyticsSnapshot,
    ContentItem,
    ContentMetrics,
    ContentPerformanceMetrics,
    ContentType,
    ConversionFunnel,
    FunnelStepDefinition,
    PlatformAnalytics,
    RealTimeAnalytics,
    RecommendationMetrics,
    SearchQuery,
    Session,
    Timeframe,
    TimeSeriesData,
    TimeSeriesMetric,
    UserBehaviorMetrics,
    utcnow,
)
from wikipulse.core.timeframes import get_date_range, get_timezone
from wikipulse.infrastructure.stores import AnalyticsStore
from wikipulse.tracking.sessions import Clock

logger = logging.getLogger(__name__)


def _humanize(timeframe: Timeframe) -> str:
    return timeframe.value.replace("_", " ")


class AnalyticsReporter:
    """Computes metrics, reports and snapshots for one AnalyticsStore."""

    def __init__(
        self,
        store: AnalyticsStore,
        clock: Clock = utcnow,
        timezone: str = "UTC",
        session_timeout_minutes: int = 30,
        trending_threshold: int = aggregations.DEFAULT_TRENDING_THRESHOLD,
        trending_window_hours: int = 24,
    ):
        """
        Initialize the reporter.

        Args:
            store: Analytics store to read
            clock: Returns the current time (injectable for virtual time)
            timezone: IANA timezone for calendar aggregations
            session_timeout_minutes: Window in which a session counts as active
            trending_threshold: Views inside the trending window that mark content as trending
            trending_window_hours: Trending window in hours
        """
        self.store = store
        self.clock = clock
        self.tz = get_timezone(timezone)
        self.session_timeout = timedelta(minutes=session_timeout_minutes)
        self.trending_threshold = trending_threshold
        self.trending_window = timedelta(hours=trending_window_hours)

    # ==========================================================================
    # Store Reads
    # ==========================================================================

    def load_events(self) -> list[AnalyticsEvent]:
        return self.store.events.load_all()

    def load_sessions(self) -> list[Session]:
        return self.store.sessions.load_all()

    def load_searches(self) -> list[SearchQuery]:
        return self.store.searches.load_all()

    def load_content_metrics(self) -> list[ContentMetrics]:
        return self.store.content_metrics.load_all()

    def load_recommendations(self) -> list[RecommendationMetrics]:
        return self.store.recommendations.load_all()

    # ==========================================================================
    # Metrics
    # ==========================================================================

    def calculate_user_behavior_metrics(self, user_id: str) -> UserBehaviorMetrics:
        return aggregations.calculate_user_behavior_metrics(
            user_id, self.load_events(), self.load_sessions(), self.tz
        )

    def calculate_content_performance(
        self,
        content_id: str,
        content_type: ContentType,
        item: Optional[ContentItem] = None,
    ) -> ContentPerformanceMetrics:
        return aggregations.calculate_content_performance(
            content_id,
            content_type,
            self.load_events(),
            self.load_sessions(),
            self.clock(),
            item=item,
            trending_threshold=self.trending_threshold,
            trending_window=self.trending_window,
        )

    def get_top_content(
        self,
        catalog: list[ContentItem],
        content_type: Optional[ContentType] = None,
        limit: int = aggregations.TOP_LIST_LIMIT,
        sort_by: aggregations.ContentSortKey = "views",
    ) -> list[ContentPerformanceMetrics]:
        return aggregations.get_top_content(
            catalog,
            self.load_events(),
            self.load_sessions(),
            self.clock(),
            content_type=content_type,
            limit=limit,
            sort_by=sort_by,
            trending_threshold=self.trending_threshold,
        )

    def get_top_content_metrics(
        self,
        limit: int = aggregations.TOP_LIST_LIMIT,
        sort_by: Literal["views", "completions", "completion_rate"] = "views",
    ) -> list[ContentMetrics]:
        return aggregations.get_top_content_metrics(
            self.load_content_metrics(), limit=limit, sort_by=sort_by
        )

    def get_platform_analytics(
        self, timeframe: Timeframe, catalog: Optional[list[ContentItem]] = None
    ) -> PlatformAnalytics:
        return aggregations.calculate_platform_analytics(
            timeframe,
            self.load_events(),
            self.load_sessions(),
            self.clock(),
            self.tz,
            catalog=catalog,
            trending_threshold=self.trending_threshold,
        )

    def calculate_conversion_funnel(
        self,
        name: str,
        steps: list[FunnelStepDefinition],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        timeframe: Timeframe = Timeframe.LAST_30_DAYS,
    ) -> ConversionFunnel:
        """
        Build a funnel over an explicit window, or over a timeframe when
        start/end are omitted.
        """
        if start is None or end is None:
            default_start, default_end = get_date_range(timeframe, self.clock(), self.tz)
            start = start or default_start
            end = end or default_end
        return aggregations.calculate_conversion_funnel(name, steps, start, end, self.load_events())

    def generate_time_series_data(
        self, metric: TimeSeriesMetric, period: AggregationPeriod, timeframe: Timeframe
    ) -> TimeSeriesData:
        return aggregations.generate_time_series(
            metric,
            period,
            timeframe,
            self.load_events(),
            self.load_sessions(),
            self.clock(),
            self.tz,
        )

    def get_realtime_analytics(self) -> RealTimeAnalytics:
        return aggregations.calculate_realtime_analytics(
            self.load_events(),
            self.load_sessions(),
            self.store.current_session.load(),
            self.clock(),
            self.session_timeout,
        )

    # ==========================================================================
    # Reports
    # ==========================================================================

    def generate_analytics_report(
        self,
        timeframe: Timeframe,
        title: Optional[str] = None,
        description: Optional[str] = None,
        catalog: Optional[list[ContentItem]] = None,
        user_ids: Optional[Iterable[str]] = None,
    ) -> AnalyticsReport:
        """
        Summarize a timeframe with insights and recommendations.

        Args:
            timeframe: Reporting window
            title: Report title (default derived from the timeframe)
            description: Report description (default derived from the timeframe)
            catalog: Content catalog used to rank top content
            user_ids: Users to include behavior metrics for (default: users
                     active in the window)
        """
        events = self.load_events()
        sessions = self.load_sessions()
        now = self.clock()

        summary = aggregations.calculate_platform_analytics(
            timeframe,
            events,
            sessions,
            now,
            self.tz,
            catalog=catalog,
            trending_threshold=self.trending_threshold,
        )
        insights = generate_insights(summary)

        if user_ids is None:
            window_events = aggregations.filter_events(events, summary.start_date, summary.end_date)
            user_ids = list(dict.fromkeys(e.user_id for e in window_events))
        user_behavior = [
            aggregations.calculate_user_behavior_metrics(user_id, events, sessions, self.tz)
            for user_id in user_ids
        ]

        return AnalyticsReport(
            title=title or f"Analytics Report: {_humanize(timeframe)}",
            description=description
            or f"Comprehensive analytics report for {_humanize(timeframe)}",
            generated_at=now,
            timeframe=timeframe,
            summary=summary,
            top_content=summary.top_content,
            user_behavior=user_behavior,
            insights=insights,
            recommendations=generate_recommendations(insights),
        )

    # ==========================================================================
    # Snapshots
    # ==========================================================================

    def export_analytics(self) -> dict[str, Any]:
        """
        Export every store as a JSON-compatible document.

        Infinite completion rates are written as null.
        """
        snapshot = AnalyticsSnapshot(
            events=self.load_events(),
            sessions=self.load_sessions(),
            current_session=self.store.current_session.load(),
            content_metrics=self.load_content_metrics(),
            searches=self.load_searches(),
            recommendations=self.load_recommendations(),
            consent=self.store.consent.load(),
            exported_at=self.clock(),
        )
        return snapshot.model_dump(mode="json")

    def import_analytics(self, payload: dict[str, Any]) -> bool:
        """
        Replace the stores with an exported document.

        The whole payload is validated before anything is written; an
        invalid payload leaves the stores untouched.

        Returns:
            True if every store was written
        """
        try:
            snapshot = AnalyticsSnapshot.model_validate(payload)
        except ValidationError as e:
            logger.warning("Rejected analytics import: %d invalid field(s)", e.error_count())
            return False

        results = [
            self.store.events.replace_all(snapshot.events),
            self.store.sessions.replace_all(snapshot.sessions),
            self.store.content_metrics.replace_all(snapshot.content_metrics),
            self.store.searches.replace_all(snapshot.searches),
            self.store.recommendations.replace_all(snapshot.recommendations),
        ]
        if snapshot.current_session is not None:
            results.append(self.store.current_session.save(snapshot.current_session))
        else:
            results.append(self.store.current_session.clear())
        if snapshot.consent is not None:
            results.append(self.store.consent.save(snapshot.consent))

        logger.info(
            "Imported %d events and %d sessions exported at %s",
            len(snapshot.events),
            len(snapshot.sessions),
            snapshot.exported_at.isoformat(),
        )
        return all(results)

    def clear_analytics(self) -> bool:
        """Wipe all activity stores. Consent and the device user id are kept."""
        cleared = self.store.clear_activity()
        logger.info("Cleared analytics data")
        return cleared
