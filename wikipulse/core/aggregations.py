# ==============================================================================
# Metrics Aggregation Pipeline - Pure Domain Logic
# ==============================================================================
"""
Side-effect-free metric calculations over a point-in-time store snapshot.

Every function takes the records it needs as plain lists (newest first, as
the store returns them) plus `now` and a timezone, and returns pydantic
report models. Nothing here reads or writes storage, so repeated calls over
the same snapshot always produce the same result.

Tie-breaks in mode aggregations are deterministic:
- hour of day and day of week: highest count wins, ties go to the lowest
  index (hour 0-23, Monday=0 ... Sunday=6)
- ranked lists (sections, content types, searches, errors): sorted by count
  descending; ties keep first-encountered order of the newest-first scan
"""

from collections import Counter
from datetime import datetime, timedelta, tzinfo
from typing import Iterable, Literal

from wikipulse.core.content_metrics import VIEW_EVENT_TYPES, is_completion
from wikipulse.core.models import (
    AggregationPeriod,
    AnalyticsEvent,
    ContentItem,
    ContentMetrics,
    ContentPerformanceMetrics,
    ContentType,
    ContentTypeMetrics,
    ContentTypePreference,
    ContentTypeStats,
    ConversionFunnel,
    ConversionMetrics,
    DayOfWeek,
    EngagementMetrics,
    ErrorMetric,
    EventType,
    FunnelStep,
    FunnelStepDefinition,
    PlatformAnalytics,
    RealTimeAnalytics,
    RealTimePage,
    SectionVisit,
    Session,
    Timeframe,
    TimePeriod,
    TimeSeriesData,
    TimeSeriesMetric,
    TimeSeriesPoint,
    TopSearchItem,
    UserBehaviorMetrics,
)
from wikipulse.core.timeframes import (
    format_period_label,
    get_date_range,
    in_range,
    iter_periods,
    period_key,
)

DEFAULT_TRENDING_THRESHOLD = 10
DEFAULT_TRENDING_WINDOW = timedelta(hours=24)
TOP_LIST_LIMIT = 10
RECENT_EVENTS_LIMIT = 50

ContentSortKey = Literal["views", "completions", "completion_rate", "time_spent", "title"]


# ==============================================================================
# Helpers
# ==============================================================================


def filter_events(events: Iterable[AnalyticsEvent], start: datetime, end: datetime) -> list[AnalyticsEvent]:
    return [e for e in events if in_range(e.timestamp, start, end)]


def filter_sessions(sessions: Iterable[Session], start: datetime, end: datetime) -> list[Session]:
    return [s for s in sessions if in_range(s.start_time, start, end)]


def _percent(part: int | float, whole: int | float) -> float:
    return (part / whole) * 100 if whole > 0 else 0.0


def _mode_index(counts: Counter) -> int | None:
    """Most common integer key; ties resolve to the lowest key."""
    if not counts:
        return None
    return min(counts, key=lambda key: (-counts[key], key))


def _ranked(counts: Counter) -> list[tuple]:
    """Counter items by count descending, ties in insertion order."""
    return sorted(counts.items(), key=lambda item: -item[1])


def time_of_day(hour: int) -> TimePeriod:
    if 5 <= hour < 12:
        return TimePeriod.MORNING
    if 12 <= hour < 17:
        return TimePeriod.AFTERNOON
    if 17 <= hour < 21:
        return TimePeriod.EVENING
    return TimePeriod.NIGHT


def _average(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


# ==============================================================================
# User Behavior
# ==============================================================================


def calculate_user_behavior_metrics(
    user_id: str,
    events: list[AnalyticsEvent],
    sessions: list[Session],
    tz: tzinfo,
) -> UserBehaviorMetrics:
    """Summarize one user's sessions and events."""
    user_sessions = [s for s in sessions if s.user_id == user_id]
    user_events = [e for e in events if e.user_id == user_id]

    total_sessions = len(user_sessions)
    total_session_time = sum(s.duration or 0 for s in user_sessions)
    average_session_duration = total_session_time // total_sessions if total_sessions else 0
    average_page_views = (
        sum(s.page_views for s in user_sessions) / total_sessions if total_sessions else 0.0
    )

    type_counts = Counter(e.type for e in user_events)
    total_searches = type_counts[EventType.SEARCH_PERFORM]
    search_clicks = type_counts[EventType.SEARCH_RESULT_CLICK]
    exercises_completed = sum(
        1
        for e in user_events
        if e.type == EventType.EXERCISE_COMPLETE
        or (e.type == EventType.EXERCISE_ATTEMPT and e.metadata.completed)
    )

    bounces = sum(1 for s in user_sessions if s.page_views == 1)
    active_days = {s.start_time.astimezone(tz).date() for s in user_sessions}

    # Sections from article views
    section_counts: Counter = Counter()
    section_time: dict[str, float] = {}
    for event in user_events:
        if event.type != EventType.ARTICLE_VIEW:
            continue
        section = event.metadata.section or "uncategorized"
        section_counts[section] += 1
        section_time[section] = section_time.get(section, 0.0) + (event.metadata.reading_time or 0)
    most_visited_sections = [
        SectionVisit(section=section, visit_count=count, total_time_spent=section_time[section])
        for section, count in _ranked(section_counts)[:5]
    ]

    content_type_counts: Counter = Counter(
        e.metadata.content_type for e in user_events if e.metadata.content_type
    )
    total_content = sum(content_type_counts.values())
    preferred_content_types = [
        ContentTypePreference(
            content_type=content_type, count=count, percentage=_percent(count, total_content)
        )
        for content_type, count in _ranked(content_type_counts)[:3]
    ]

    difficulty_counts: Counter = Counter(
        e.metadata.difficulty for e in user_events if e.metadata.difficulty
    )
    ranked_difficulty = _ranked(difficulty_counts)
    preferred_difficulty = ranked_difficulty[0][0] if ranked_difficulty else None

    local_times = [e.timestamp.astimezone(tz) for e in user_events]
    most_active_hour = _mode_index(Counter(t.hour for t in local_times))
    most_active_day = _mode_index(Counter(t.weekday() for t in local_times))
    days = list(DayOfWeek)

    return UserBehaviorMetrics(
        user_id=user_id,
        total_sessions=total_sessions,
        total_session_time=total_session_time,
        average_session_duration=average_session_duration,
        average_page_views_per_session=average_page_views,
        total_page_views=type_counts[EventType.PAGE_VIEW],
        total_articles_read=type_counts[EventType.ARTICLE_COMPLETE],
        total_tutorials_completed=type_counts[EventType.TUTORIAL_COMPLETE],
        total_paths_completed=type_counts[EventType.PATH_COMPLETE],
        total_exercises_completed=exercises_completed,
        total_code_executions=type_counts[EventType.CODE_EXECUTE],
        total_searches=total_searches,
        successful_search_rate=_percent(search_clicks, total_searches),
        bounce_rate=_percent(bounces, total_sessions),
        return_visits=max(0, len(active_days) - 1),
        last_activity=max((e.timestamp for e in user_events), default=None),
        most_visited_sections=most_visited_sections,
        preferred_content_types=preferred_content_types,
        preferred_difficulty_level=preferred_difficulty,
        most_active_hour=most_active_hour,
        most_active_time_of_day=(
            time_of_day(most_active_hour) if most_active_hour is not None else TimePeriod.MORNING
        ),
        most_active_day_of_week=(
            days[most_active_day] if most_active_day is not None else DayOfWeek.MONDAY
        ),
    )


# ==============================================================================
# Content Performance
# ==============================================================================


def calculate_content_performance(
    content_id: str,
    content_type: ContentType,
    events: list[AnalyticsEvent],
    sessions: list[Session],
    now: datetime,
    item: ContentItem | None = None,
    trending_threshold: int = DEFAULT_TRENDING_THRESHOLD,
    trending_window: timedelta = DEFAULT_TRENDING_WINDOW,
) -> ContentPerformanceMetrics:
    """
    Derive performance metrics for one piece of content from the event log.

    Catalog fields (title, section, tags, difficulty) come from `item` when
    given, otherwise from the most recent event that carried them.
    """
    content_events = [
        e
        for e in events
        if e.metadata.content_id == content_id and e.metadata.content_type == content_type
    ]
    view_events = [e for e in content_events if e.type in VIEW_EVENT_TYPES]
    completions = sum(1 for e in content_events if is_completion(e))
    total_views = len(view_events)

    reading_times = [e.metadata.reading_time for e in content_events if e.metadata.reading_time]
    scroll_depths = [
        e.metadata.scroll_depth for e in content_events if e.metadata.scroll_depth is not None
    ]

    views_per_session = Counter(e.session_id for e in view_events)
    bounced_sessions = sum(1 for count in views_per_session.values() if count == 1)
    exits = sum(1 for s in sessions if s.exit_page and content_id in s.exit_page)

    search_referrals = sum(
        1
        for e in events
        if e.type == EventType.SEARCH_RESULT_CLICK and e.metadata.clicked_result_id == content_id
    )

    trending_since = now - trending_window
    recent_views = sum(1 for e in view_events if e.timestamp > trending_since)

    title = item.title if item else next(
        (e.metadata.content_title for e in content_events if e.metadata.content_title), ""
    )
    section = item.section if item else next(
        (e.metadata.section for e in content_events if e.metadata.section), None
    )
    tags = item.tags if item else next((e.metadata.tags for e in content_events if e.metadata.tags), [])
    difficulty = item.difficulty if item else next(
        (e.metadata.difficulty for e in content_events if e.metadata.difficulty), None
    )

    return ContentPerformanceMetrics(
        content_type=content_type,
        content_id=content_id,
        content_title=title,
        section=section,
        total_views=total_views,
        unique_views=len({e.user_id for e in view_events}),
        completions=completions,
        completion_rate=_percent(completions, total_views),
        average_time_spent=_average(reading_times),
        average_scroll_depth=_average(scroll_depths),
        bounce_rate=_percent(bounced_sessions, len(views_per_session)),
        exit_rate=_percent(exits, len(views_per_session)),
        search_referrals=search_referrals,
        last_viewed=max((e.timestamp for e in view_events), default=None),
        trending=recent_views >= trending_threshold,
        difficulty=difficulty,
        tags=list(tags),
    )


_PERFORMANCE_SORT_KEYS = {
    "views": lambda m: m.total_views,
    "completions": lambda m: m.completions,
    "completion_rate": lambda m: m.completion_rate,
    "time_spent": lambda m: m.average_time_spent,
}


def get_top_content(
    catalog: list[ContentItem],
    events: list[AnalyticsEvent],
    sessions: list[Session],
    now: datetime,
    content_type: ContentType | None = None,
    limit: int = TOP_LIST_LIMIT,
    sort_by: ContentSortKey = "views",
    trending_threshold: int = DEFAULT_TRENDING_THRESHOLD,
) -> list[ContentPerformanceMetrics]:
    """Rank catalog items by a performance metric (descending, title ascending)."""
    performance = [
        calculate_content_performance(
            item.id,
            item.content_type,
            events,
            sessions,
            now,
            item=item,
            trending_threshold=trending_threshold,
        )
        for item in catalog
        if content_type is None or item.content_type == content_type
    ]
    if sort_by == "title":
        performance.sort(key=lambda m: m.content_title.lower())
    else:
        performance.sort(key=_PERFORMANCE_SORT_KEYS[sort_by], reverse=True)
    return performance[:limit]


def get_top_content_metrics(
    metrics: list[ContentMetrics],
    limit: int = TOP_LIST_LIMIT,
    sort_by: Literal["views", "completions", "completion_rate"] = "views",
) -> list[ContentMetrics]:
    """
    Rank the incrementally maintained content counters.

    An infinite completion rate (completions without views) sorts above
    every finite rate.
    """
    return sorted(metrics, key=lambda m: getattr(m, sort_by), reverse=True)[:limit]


def calculate_content_type_stats(type_events: list[AnalyticsEvent]) -> ContentTypeStats:
    """Roll up the events of one content type."""
    view_events = [e for e in type_events if e.type in VIEW_EVENT_TYPES]
    completions = sum(1 for e in type_events if is_completion(e))
    reading_times = [e.metadata.reading_time for e in type_events if e.metadata.reading_time]
    content_counts: Counter = Counter(
        e.metadata.content_id for e in type_events if e.metadata.content_id
    )
    return ContentTypeStats(
        total_views=len(view_events),
        unique_views=len({e.user_id for e in view_events}),
        completions=completions,
        completion_rate=_percent(completions, len(view_events)),
        average_time_spent=_average(reading_times),
        top_content=[content_id for content_id, _ in _ranked(content_counts)[:5]],
    )


# ==============================================================================
# Platform
# ==============================================================================


def _top_searches(window_events: list[AnalyticsEvent]) -> list[TopSearchItem]:
    search_counts: Counter = Counter(
        e.metadata.search_query
        for e in window_events
        if e.type == EventType.SEARCH_PERFORM and e.metadata.search_query
    )
    top = []
    for query, search_count in _ranked(search_counts)[:TOP_LIST_LIMIT]:
        clicks = [
            e
            for e in window_events
            if e.type == EventType.SEARCH_RESULT_CLICK and e.metadata.search_query == query
        ]
        top.append(
            TopSearchItem(
                query=query,
                search_count=search_count,
                click_rate=_percent(len(clicks), search_count),
                average_result_position=_average(
                    [e.metadata.result_position or 0 for e in clicks]
                ),
            )
        )
    return top


def _top_errors(window_events: list[AnalyticsEvent]) -> list[ErrorMetric]:
    errors: dict[str, ErrorMetric] = {}
    for event in window_events:
        if event.type != EventType.ERROR_OCCURRED:
            continue
        message = event.metadata.error_message or "Unknown error"
        metric = errors.get(message)
        if metric is None:
            errors[message] = ErrorMetric(
                error_message=message,
                count=1,
                last_occurred=event.timestamp,
                affected_pages=[event.page],
            )
            continue
        metric.count += 1
        metric.last_occurred = max(metric.last_occurred, event.timestamp)
        if event.page not in metric.affected_pages:
            metric.affected_pages.append(event.page)
    return sorted(errors.values(), key=lambda m: -m.count)[:TOP_LIST_LIMIT]


def _users_with(window_events: list[AnalyticsEvent], *types: EventType) -> set[str]:
    return {e.user_id for e in window_events if e.type in types}


def _conversion_rates(window_events: list[AnalyticsEvent]) -> ConversionMetrics:
    article_users = _users_with(window_events, EventType.ARTICLE_VIEW)
    tutorial_users = _users_with(window_events, EventType.TUTORIAL_START, EventType.TUTORIAL_VIEW)
    path_users = _users_with(window_events, EventType.PATH_START, EventType.PATH_VIEW)
    path_finishers = _users_with(window_events, EventType.PATH_COMPLETE)
    return ConversionMetrics(
        article_to_tutorial=_percent(len(article_users & tutorial_users), len(article_users)),
        tutorial_to_path=_percent(len(tutorial_users & path_users), len(tutorial_users)),
        path_to_completion=_percent(len(path_users & path_finishers), len(path_users)),
    )


def _engagement(
    window_events: list[AnalyticsEvent],
    window_sessions: list[Session],
    total_page_views: int,
    average_session_duration: int,
) -> EngagementMetrics:
    total_sessions = len(window_sessions)
    starts_by_user: dict[str, list[datetime]] = {}
    for session in window_sessions:
        starts_by_user.setdefault(session.user_id, []).append(session.start_time)

    returning = sum(1 for starts in starts_by_user.values() if len(starts) > 1)
    gaps: list[float] = []
    for starts in starts_by_user.values():
        ordered = sorted(starts)
        gaps.extend(
            (later - earlier).total_seconds() / 3600 for earlier, later in zip(ordered, ordered[1:])
        )

    type_counts = Counter(e.type for e in window_events)
    return EngagementMetrics(
        average_page_views_per_session=total_page_views / total_sessions if total_sessions else 0.0,
        average_session_duration=average_session_duration,
        average_articles_per_session=(
            type_counts[EventType.ARTICLE_COMPLETE] / total_sessions if total_sessions else 0.0
        ),
        average_tutorials_per_session=(
            type_counts[EventType.TUTORIAL_COMPLETE] / total_sessions if total_sessions else 0.0
        ),
        return_user_rate=_percent(returning, len(starts_by_user)),
        average_time_between_sessions=_average(gaps),
    )


def calculate_platform_analytics(
    timeframe: Timeframe,
    events: list[AnalyticsEvent],
    sessions: list[Session],
    now: datetime,
    tz: tzinfo,
    catalog: list[ContentItem] | None = None,
    trending_threshold: int = DEFAULT_TRENDING_THRESHOLD,
) -> PlatformAnalytics:
    """Aggregate every user's activity inside a timeframe."""
    start, end = get_date_range(timeframe, now, tz)
    window_events = filter_events(events, start, end)
    window_sessions = filter_sessions(sessions, start, end)

    window_users = {e.user_id for e in window_events}
    existing_users = {s.user_id for s in sessions if s.start_time < start}

    total_sessions = len(window_sessions)
    total_session_time = sum(s.duration or 0 for s in window_sessions)
    average_session_duration = total_session_time // total_sessions if total_sessions else 0
    total_page_views = sum(1 for e in window_events if e.type == EventType.PAGE_VIEW)
    bounces = sum(1 for s in window_sessions if s.page_views == 1)

    def events_of(content_type: ContentType) -> list[AnalyticsEvent]:
        return [e for e in window_events if e.metadata.content_type == content_type]

    top_content = (
        get_top_content(
            catalog,
            window_events,
            window_sessions,
            now,
            trending_threshold=trending_threshold,
        )
        if catalog
        else []
    )

    return PlatformAnalytics(
        timeframe=timeframe,
        start_date=start,
        end_date=end,
        total_users=len(window_users),
        active_users=len(window_users),
        new_users=len(window_users - existing_users),
        total_sessions=total_sessions,
        total_page_views=total_page_views,
        average_session_duration=average_session_duration,
        bounce_rate=_percent(bounces, total_sessions),
        top_content=top_content,
        top_searches=_top_searches(window_events),
        top_errors=_top_errors(window_events),
        conversion_rates=_conversion_rates(window_events),
        engagement_metrics=_engagement(
            window_events, window_sessions, total_page_views, average_session_duration
        ),
        content_performance=ContentTypeMetrics(
            articles=calculate_content_type_stats(events_of(ContentType.ARTICLE)),
            tutorials=calculate_content_type_stats(events_of(ContentType.TUTORIAL)),
            paths=calculate_content_type_stats(events_of(ContentType.PATH)),
            exercises=calculate_content_type_stats(events_of(ContentType.EXERCISE)),
        ),
    )


# ==============================================================================
# Conversion Funnel
# ==============================================================================


def calculate_conversion_funnel(
    name: str,
    steps: list[FunnelStepDefinition],
    start: datetime,
    end: datetime,
    events: list[AnalyticsEvent],
) -> ConversionFunnel:
    """
    Measure distinct-user retention across an ordered list of event types.

    The count before the first step is every user active in the window.
    Counts are not required to decrease: a user can hit a later step
    without an earlier one.
    """
    window_events = filter_events(events, start, end)
    total_users = len({e.user_id for e in window_events})

    counts = [len(_users_with(window_events, step.event_type)) for step in steps]

    funnel_steps = []
    for index, (step, count) in enumerate(zip(steps, counts)):
        previous = total_users if index == 0 else counts[index - 1]
        funnel_steps.append(
            FunnelStep(
                step_name=step.step_name,
                step_number=index + 1,
                count=count,
                drop_off=previous - count,
                conversion_rate=count / previous if previous > 0 else 0.0,
            )
        )

    overall = counts[-1] / total_users if counts and total_users > 0 else 0.0
    return ConversionFunnel(
        name=name,
        start_date=start,
        end_date=end,
        steps=funnel_steps,
        overall_conversion=overall,
    )


# ==============================================================================
# Time Series
# ==============================================================================


def generate_time_series(
    metric: TimeSeriesMetric,
    period: AggregationPeriod,
    timeframe: Timeframe,
    events: list[AnalyticsEvent],
    sessions: list[Session],
    now: datetime,
    tz: tzinfo,
) -> TimeSeriesData:
    """
    Bucket a metric over a timeframe.

    One bucket is created for every period in the range, including empty
    ones; records are then scanned once and counted into their bucket.
    """
    start, end = get_date_range(timeframe, now, tz)
    points: dict[datetime, TimeSeriesPoint] = {}
    for period_start in iter_periods(start, end, period, tz):
        points[period_start.replace(tzinfo=None)] = TimeSeriesPoint(
            timestamp=period_start,
            value=0,
            label=format_period_label(period_start, period),
        )

    def bump(moment: datetime) -> None:
        point = points.get(period_key(moment, period, tz))
        if point is not None:
            point.value += 1

    if metric == TimeSeriesMetric.SESSIONS:
        for session in filter_sessions(sessions, start, end):
            bump(session.start_time)
    elif metric == TimeSeriesMetric.USERS:
        seen: set[tuple[datetime, str]] = set()
        for event in filter_events(events, start, end):
            key = period_key(event.timestamp, period, tz)
            if (key, event.user_id) not in seen:
                seen.add((key, event.user_id))
                bump(event.timestamp)
    else:
        for event in filter_events(events, start, end):
            if metric == TimeSeriesMetric.PAGE_VIEWS and event.type == EventType.PAGE_VIEW:
                bump(event.timestamp)
            elif metric == TimeSeriesMetric.COMPLETIONS and event.type.is_completion:
                bump(event.timestamp)

    return TimeSeriesData(
        metric=metric,
        period=period,
        data=sorted(points.values(), key=lambda p: p.timestamp),
    )


# ==============================================================================
# Real-Time
# ==============================================================================


def calculate_realtime_analytics(
    events: list[AnalyticsEvent],
    sessions: list[Session],
    current_session: Session | None,
    now: datetime,
    timeout: timedelta,
    session_limit: int = 100,
) -> RealTimeAnalytics:
    """Snapshot of what is happening right now on this device's store."""
    active = [
        s for s in sessions if s.end_time is None or now - s.end_time < timeout
    ]
    if current_session is not None and now - current_session.start_time < timeout:
        active.insert(0, current_session)

    visitors: dict[str, set[str]] = {}
    reading_time: dict[str, float] = {}
    for event in events:
        if event.type != EventType.PAGE_VIEW:
            continue
        visitors.setdefault(event.page, set()).add(event.user_id)
        reading_time[event.page] = reading_time.get(event.page, 0.0) + (
            event.metadata.reading_time or 0
        )

    top_pages = sorted(
        (
            RealTimePage(
                page=page,
                visitors=len(users),
                avg_time_on_page=reading_time[page] / len(users),
            )
            for page, users in visitors.items()
        ),
        key=lambda p: -p.visitors,
    )[:TOP_LIST_LIMIT]

    return RealTimeAnalytics(
        current_users=len(active),
        active_sessions=active[:session_limit],
        top_pages=top_pages,
        recent_events=events[:RECENT_EVENTS_LIMIT],
    )
