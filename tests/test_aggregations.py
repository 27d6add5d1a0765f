# ==============================================================================
# Tests for the Metrics Aggregation Pipeline
# ==============================================================================
"""
Tests for user behavior, content performance, platform and real-time
aggregations over hand-built event and session snapshots.
"""

from datetime import timedelta, timezone

import pytest

from conftest import START_TIME, make_event, make_session

from wikipulse.core.aggregations import (
    calculate_content_performance,
    calculate_platform_analytics,
    calculate_realtime_analytics,
    calculate_user_behavior_metrics,
    get_top_content,
    get_top_content_metrics,
    time_of_day,
)
from wikipulse.core.models import (
    ContentItem,
    ContentMetrics,
    ContentType,
    DayOfWeek,
    Difficulty,
    EventType,
    Timeframe,
    TimePeriod,
)

UTC = timezone.utc


# ==============================================================================
# User Behavior
# ==============================================================================


class TestUserBehaviorMetrics:
    """Tests for calculate_user_behavior_metrics."""

    def test_empty_user(self):
        metrics = calculate_user_behavior_metrics("nobody", [], [], UTC)
        assert metrics.total_sessions == 0
        assert metrics.average_session_duration == 0
        assert metrics.bounce_rate == 0.0
        assert metrics.most_active_hour is None
        assert metrics.most_active_time_of_day == TimePeriod.MORNING
        assert metrics.most_active_day_of_week == DayOfWeek.MONDAY

    def test_session_totals(self):
        sessions = [
            make_session("s1", duration=100, page_views=1),
            make_session("s2", duration=201, page_views=3, start_time=START_TIME + timedelta(days=1)),
            make_session("s3", user_id="other", duration=999),
        ]
        metrics = calculate_user_behavior_metrics("user_a", [], sessions, UTC)
        assert metrics.total_sessions == 2
        assert metrics.total_session_time == 301
        assert metrics.average_session_duration == 150
        assert metrics.average_page_views_per_session == 2.0
        assert metrics.bounce_rate == 50.0
        assert metrics.return_visits == 1

    def test_event_counts(self):
        events = [
            make_event(EventType.PAGE_VIEW),
            make_event(EventType.PAGE_VIEW),
            make_event(EventType.ARTICLE_COMPLETE),
            make_event(EventType.TUTORIAL_COMPLETE),
            make_event(EventType.EXERCISE_ATTEMPT, completed=True),
            make_event(EventType.EXERCISE_ATTEMPT, completed=False),
            make_event(EventType.CODE_EXECUTE),
            make_event(EventType.SEARCH_PERFORM, search_query="x"),
            make_event(EventType.SEARCH_PERFORM, search_query="y"),
            make_event(EventType.SEARCH_RESULT_CLICK, search_query="x"),
        ]
        metrics = calculate_user_behavior_metrics("user_a", events, [], UTC)
        assert metrics.total_page_views == 2
        assert metrics.total_articles_read == 1
        assert metrics.total_tutorials_completed == 1
        assert metrics.total_exercises_completed == 1
        assert metrics.total_code_executions == 1
        assert metrics.total_searches == 2
        assert metrics.successful_search_rate == 50.0

    def test_sections_and_preferences(self):
        events = [
            make_event(EventType.ARTICLE_VIEW, section="basics", reading_time=30, content_type=ContentType.ARTICLE),
            make_event(EventType.ARTICLE_VIEW, section="basics", reading_time=45, content_type=ContentType.ARTICLE),
            make_event(EventType.ARTICLE_VIEW, section="web", content_type=ContentType.ARTICLE),
            make_event(EventType.TUTORIAL_START, content_type=ContentType.TUTORIAL, difficulty=Difficulty.ADVANCED),
        ]
        metrics = calculate_user_behavior_metrics("user_a", events, [], UTC)

        assert metrics.most_visited_sections[0].section == "basics"
        assert metrics.most_visited_sections[0].visit_count == 2
        assert metrics.most_visited_sections[0].total_time_spent == 75
        assert metrics.preferred_content_types[0].content_type == ContentType.ARTICLE
        assert metrics.preferred_content_types[0].percentage == 75.0
        assert metrics.preferred_difficulty_level == Difficulty.ADVANCED

    def test_most_active_hour_and_day(self):
        # START_TIME is Wednesday 14:00 UTC
        events = [
            make_event(EventType.PAGE_VIEW, timestamp=START_TIME),
            make_event(EventType.PAGE_VIEW, timestamp=START_TIME + timedelta(minutes=5)),
            make_event(EventType.PAGE_VIEW, timestamp=START_TIME + timedelta(hours=6)),
        ]
        metrics = calculate_user_behavior_metrics("user_a", events, [], UTC)
        assert metrics.most_active_hour == 14
        assert metrics.most_active_time_of_day == TimePeriod.AFTERNOON
        assert metrics.most_active_day_of_week == DayOfWeek.WEDNESDAY
        assert metrics.last_activity == START_TIME + timedelta(hours=6)

    def test_hour_tie_goes_to_lowest(self):
        events = [
            make_event(EventType.PAGE_VIEW, timestamp=START_TIME),
            make_event(EventType.PAGE_VIEW, timestamp=START_TIME - timedelta(hours=5)),
        ]
        assert calculate_user_behavior_metrics("user_a", events, [], UTC).most_active_hour == 9

    @pytest.mark.parametrize(
        "hour, period",
        [
            (5, TimePeriod.MORNING),
            (11, TimePeriod.MORNING),
            (12, TimePeriod.AFTERNOON),
            (17, TimePeriod.EVENING),
            (21, TimePeriod.NIGHT),
            (2, TimePeriod.NIGHT),
        ],
    )
    def test_time_of_day(self, hour, period):
        assert time_of_day(hour) == period


# ==============================================================================
# Content Performance
# ==============================================================================


def _article_events():
    return [
        make_event(
            EventType.ARTICLE_VIEW,
            session_id="s1",
            user_id="u1",
            content_id="intro",
            content_type=ContentType.ARTICLE,
            content_title="Intro",
        ),
        make_event(
            EventType.ARTICLE_VIEW,
            session_id="s2",
            user_id="u2",
            content_id="intro",
            content_type=ContentType.ARTICLE,
        ),
        make_event(
            EventType.ARTICLE_VIEW,
            session_id="s2",
            user_id="u2",
            timestamp=START_TIME + timedelta(minutes=1),
            content_id="intro",
            content_type=ContentType.ARTICLE,
        ),
        make_event(
            EventType.ARTICLE_COMPLETE,
            session_id="s2",
            user_id="u2",
            content_id="intro",
            content_type=ContentType.ARTICLE,
            reading_time=90,
            scroll_depth=100,
        ),
        make_event(
            EventType.SEARCH_RESULT_CLICK,
            session_id="s2",
            user_id="u2",
            clicked_result_id="intro",
        ),
    ]


class TestContentPerformance:
    """Tests for calculate_content_performance."""

    def test_counts(self):
        sessions = [make_session("s1", exit_page="/articles/intro"), make_session("s2", exit_page="/")]
        metrics = calculate_content_performance(
            "intro", ContentType.ARTICLE, _article_events(), sessions, START_TIME
        )
        assert metrics.total_views == 3
        assert metrics.unique_views == 2
        assert metrics.completions == 1
        assert metrics.completion_rate == pytest.approx(33.33, abs=0.01)
        assert metrics.average_time_spent == 90
        assert metrics.average_scroll_depth == 100
        assert metrics.bounce_rate == 50.0
        assert metrics.exit_rate == 50.0
        assert metrics.search_referrals == 1
        assert metrics.content_title == "Intro"
        assert metrics.last_viewed == START_TIME + timedelta(minutes=1)

    def test_unknown_content(self):
        metrics = calculate_content_performance("missing", ContentType.ARTICLE, _article_events(), [], START_TIME)
        assert metrics.total_views == 0
        assert metrics.completion_rate == 0.0
        assert metrics.last_viewed is None

    def test_catalog_fields_win(self):
        item = ContentItem(
            id="intro", title="Introduction", content_type=ContentType.ARTICLE, tags=["python"]
        )
        metrics = calculate_content_performance(
            "intro", ContentType.ARTICLE, _article_events(), [], START_TIME, item=item
        )
        assert metrics.content_title == "Introduction"
        assert metrics.tags == ["python"]

    def test_trending(self):
        metrics = calculate_content_performance(
            "intro", ContentType.ARTICLE, _article_events(), [], START_TIME, trending_threshold=3
        )
        assert metrics.trending is True
        later = calculate_content_performance(
            "intro",
            ContentType.ARTICLE,
            _article_events(),
            [],
            START_TIME + timedelta(days=2),
            trending_threshold=3,
        )
        assert later.trending is False


class TestTopContent:
    """Tests for ranking content."""

    def test_catalog_ranking(self):
        catalog = [
            ContentItem(id="intro", title="Intro", content_type=ContentType.ARTICLE),
            ContentItem(id="quiet", title="Quiet", content_type=ContentType.ARTICLE),
            ContentItem(id="async", title="Async", content_type=ContentType.TUTORIAL),
        ]
        top = get_top_content(catalog, _article_events(), [], START_TIME)
        assert [m.content_id for m in top] == ["intro", "quiet", "async"]

        articles = get_top_content(catalog, _article_events(), [], START_TIME, content_type=ContentType.ARTICLE, limit=1)
        assert [m.content_id for m in articles] == ["intro"]

        by_title = get_top_content(catalog, _article_events(), [], START_TIME, sort_by="title")
        assert [m.content_title for m in by_title] == ["Async", "Intro", "Quiet"]

    def test_counter_ranking_puts_infinite_first(self):
        metrics = [
            ContentMetrics(content_id="a", content_type=ContentType.ARTICLE, views=4, completions=2, completion_rate=0.5),
            ContentMetrics(content_id="b", content_type=ContentType.ARTICLE, views=0, completions=1, completion_rate=float("inf")),
            ContentMetrics(content_id="c", content_type=ContentType.ARTICLE, views=9, completions=0, completion_rate=0.0),
        ]
        assert [m.content_id for m in get_top_content_metrics(metrics)] == ["c", "a", "b"]
        assert [m.content_id for m in get_top_content_metrics(metrics, sort_by="completion_rate")] == ["b", "a", "c"]
        assert len(get_top_content_metrics(metrics, limit=2)) == 2


# ==============================================================================
# Platform
# ==============================================================================


class TestPlatformAnalytics:
    """Tests for calculate_platform_analytics."""

    def test_all_single_page_sessions_bounce(self):
        sessions = [make_session(f"s{i}", page_views=1) for i in range(4)]
        analytics = calculate_platform_analytics(Timeframe.TODAY, [], sessions, START_TIME, UTC)
        assert analytics.total_sessions == 4
        assert analytics.bounce_rate == 100.0

    def test_window_filtering(self):
        old = START_TIME - timedelta(days=10)
        events = [
            make_event(EventType.PAGE_VIEW, user_id="u1"),
            make_event(EventType.PAGE_VIEW, user_id="u2"),
            make_event(EventType.PAGE_VIEW, user_id="u3", timestamp=old),
        ]
        sessions = [
            make_session("s1", user_id="u1", duration=100, page_views=2),
            make_session("s0", user_id="u1", start_time=old, duration=50),
            make_session("s2", user_id="u2", duration=300, page_views=1),
        ]
        analytics = calculate_platform_analytics(Timeframe.LAST_7_DAYS, events, sessions, START_TIME, UTC)

        assert analytics.active_users == 2
        assert analytics.new_users == 1
        assert analytics.total_sessions == 2
        assert analytics.total_page_views == 2
        assert analytics.average_session_duration == 200
        assert analytics.bounce_rate == 50.0

    def test_top_searches_and_errors(self):
        events = [
            make_event(EventType.SEARCH_PERFORM, search_query="async"),
            make_event(EventType.SEARCH_PERFORM, search_query="async"),
            make_event(EventType.SEARCH_PERFORM, search_query="regex"),
            make_event(EventType.SEARCH_RESULT_CLICK, search_query="async", result_position=3),
            make_event(EventType.ERROR_OCCURRED, error_message="boom", page="/a"),
            make_event(EventType.ERROR_OCCURRED, error_message="boom", page="/b"),
            make_event(EventType.ERROR_OCCURRED),
        ]
        analytics = calculate_platform_analytics(Timeframe.TODAY, events, [], START_TIME, UTC)

        top = analytics.top_searches[0]
        assert (top.query, top.search_count, top.click_rate, top.average_result_position) == ("async", 2, 50.0, 3.0)
        assert analytics.top_errors[0].error_message == "boom"
        assert analytics.top_errors[0].count == 2
        assert analytics.top_errors[0].affected_pages == ["/a", "/b"]
        assert analytics.top_errors[1].error_message == "Unknown error"

    def test_conversion_rates(self):
        events = [
            make_event(EventType.ARTICLE_VIEW, user_id="u1"),
            make_event(EventType.ARTICLE_VIEW, user_id="u2"),
            make_event(EventType.TUTORIAL_START, user_id="u1"),
            make_event(EventType.PATH_START, user_id="u1"),
            make_event(EventType.PATH_COMPLETE, user_id="u1"),
        ]
        rates = calculate_platform_analytics(Timeframe.TODAY, events, [], START_TIME, UTC).conversion_rates
        assert rates.article_to_tutorial == 50.0
        assert rates.tutorial_to_path == 100.0
        assert rates.path_to_completion == 100.0

    def test_engagement(self):
        sessions = [
            make_session("s1", user_id="u1", start_time=START_TIME - timedelta(hours=4)),
            make_session("s2", user_id="u1", start_time=START_TIME),
            make_session("s3", user_id="u2", start_time=START_TIME),
        ]
        engagement = calculate_platform_analytics(
            Timeframe.TODAY, [], sessions, START_TIME, UTC
        ).engagement_metrics
        assert engagement.return_user_rate == 50.0
        assert engagement.average_time_between_sessions == 4.0

    def test_content_type_rollup(self):
        events = [
            make_event(EventType.TUTORIAL_START, content_id="t1", content_type=ContentType.TUTORIAL),
            make_event(EventType.TUTORIAL_START, content_id="t2", content_type=ContentType.TUTORIAL),
            make_event(EventType.TUTORIAL_COMPLETE, content_id="t1", content_type=ContentType.TUTORIAL),
        ]
        tutorials = calculate_platform_analytics(
            Timeframe.TODAY, events, [], START_TIME, UTC
        ).content_performance.tutorials
        assert tutorials.total_views == 2
        assert tutorials.completions == 1
        assert tutorials.completion_rate == 50.0
        assert tutorials.top_content[0] == "t1"

    def test_idempotent(self):
        events = _article_events()
        sessions = [make_session("s1")]
        first = calculate_platform_analytics(Timeframe.LAST_30_DAYS, events, sessions, START_TIME, UTC)
        second = calculate_platform_analytics(Timeframe.LAST_30_DAYS, events, sessions, START_TIME, UTC)
        assert first == second


# ==============================================================================
# Real-Time
# ==============================================================================


class TestRealtimeAnalytics:
    """Tests for calculate_realtime_analytics."""

    def test_active_sessions(self):
        now = START_TIME + timedelta(minutes=20)
        sessions = [
            make_session("recent", duration=600),
            make_session("stale", start_time=START_TIME - timedelta(hours=3), duration=60),
        ]
        current = make_session("current", start_time=now - timedelta(minutes=1), duration=None)
        realtime = calculate_realtime_analytics([], sessions, current, now, timedelta(minutes=30))

        assert realtime.current_users == 2
        assert [s.session_id for s in realtime.active_sessions] == ["current", "recent"]

    def test_top_pages_and_recent_events(self):
        events = [
            make_event(EventType.PAGE_VIEW, user_id="u1", page="/a", reading_time=30),
            make_event(EventType.PAGE_VIEW, user_id="u2", page="/a", reading_time=10),
            make_event(EventType.PAGE_VIEW, user_id="u1", page="/b"),
        ] + [make_event(EventType.CODE_EXECUTE, event_id=f"e{i}") for i in range(60)]
        realtime = calculate_realtime_analytics(events, [], None, START_TIME, timedelta(minutes=30))

        assert realtime.top_pages[0].page == "/a"
        assert realtime.top_pages[0].visitors == 2
        assert realtime.top_pages[0].avg_time_on_page == 20.0
        assert len(realtime.recent_events) == 50
        assert realtime.recent_events[0].page == "/a"
