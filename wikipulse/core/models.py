# ==============================================================================
# Wikipulse Domain Models
# ==============================================================================
"""
Pydantic models for telemetry events, sessions and derived metrics.

These models are used for:
- Validating records read back from the local store
- Serializing records to JSON blobs
- Typing the reports produced by the aggregation pipeline

This module is part of the core domain layer and has no external dependencies
beyond Pydantic.
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _assume_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


# Stored timestamps without an offset are read as UTC
UtcDateTime = Annotated[datetime, AfterValidator(_assume_utc)]


# ==============================================================================
# Enumerations
# ==============================================================================


class EventType(str, Enum):
    """Every kind of usage event the recorder accepts."""

    PAGE_VIEW = "page_view"
    ARTICLE_VIEW = "article_view"
    ARTICLE_COMPLETE = "article_complete"
    TUTORIAL_START = "tutorial_start"
    TUTORIAL_VIEW = "tutorial_view"
    TUTORIAL_STEP_COMPLETE = "tutorial_step_complete"
    TUTORIAL_COMPLETE = "tutorial_complete"
    PATH_START = "path_start"
    PATH_VIEW = "path_view"
    PATH_ITEM_COMPLETE = "path_item_complete"
    PATH_COMPLETE = "path_complete"
    SEARCH_PERFORM = "search_perform"
    SEARCH_RESULT_CLICK = "search_result_click"
    RECOMMENDATION_CLICK = "recommendation_click"
    CODE_EXECUTE = "code_execute"
    EXERCISE_ATTEMPT = "exercise_attempt"
    EXERCISE_COMPLETE = "exercise_complete"
    CONTRIBUTION_SUBMIT = "contribution_submit"
    CONTRIBUTION_APPROVE = "contribution_approve"
    ACHIEVEMENT_UNLOCK = "achievement_unlock"
    SESSION_START = "session_start"
    SESSION_END = "session_end"
    ERROR_OCCURRED = "error_occurred"

    @property
    def is_completion(self) -> bool:
        """Whether this event marks a finished piece of content."""
        return self.value.endswith("_complete")


class ContentType(str, Enum):
    """Kinds of content that events can refer to."""

    ARTICLE = "article"
    TUTORIAL = "tutorial"
    PATH = "path"
    EXERCISE = "exercise"
    CODE_EXAMPLE = "code_example"


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"


class TimePeriod(str, Enum):
    """Coarse time-of-day buckets used for activity patterns."""

    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"


class DayOfWeek(str, Enum):
    """Days in Python weekday() order (Monday=0)."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class Timeframe(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    ALL_TIME = "all_time"


class AggregationPeriod(str, Enum):
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class TimeSeriesMetric(str, Enum):
    PAGE_VIEWS = "page_views"
    SESSIONS = "sessions"
    USERS = "users"
    COMPLETIONS = "completions"


# ==============================================================================
# Events
# ==============================================================================


class Viewport(BaseModel):
    width: int
    height: int


class EventMetadata(BaseModel):
    """
    Open, typed bag of event details.

    Every field is optional; which ones are present depends on the event
    type. Unknown keys are kept so collaborators can attach extra context
    without a schema change.
    """

    model_config = ConfigDict(extra="allow", use_enum_values=False)

    # Common
    content_type: Optional[ContentType] = None
    content_id: Optional[str] = None
    content_title: Optional[str] = None
    section: Optional[str] = None
    tags: Optional[list[str]] = None

    # Articles
    reading_time: Optional[float] = Field(default=None, description="Seconds")
    scroll_depth: Optional[float] = Field(default=None, description="Percentage 0-100")
    code_blocks_viewed: Optional[int] = None
    code_blocks_executed: Optional[int] = None

    # Tutorials
    step_id: Optional[str] = None
    step_number: Optional[int] = None
    total_steps: Optional[int] = None
    difficulty: Optional[Difficulty] = None

    # Learning paths
    item_id: Optional[str] = None
    item_completed: Optional[int] = None
    item_total: Optional[int] = None

    # Search
    search_query: Optional[str] = None
    results_count: Optional[int] = None
    result_position: Optional[int] = None
    clicked_result_id: Optional[str] = None

    # Code execution
    language: Optional[str] = None
    execution_success: Optional[bool] = None
    execution_time: Optional[float] = Field(default=None, description="Milliseconds")
    error_type: Optional[str] = None

    # Exercises
    hints_used: Optional[int] = None
    attempts: Optional[int] = None
    completed: Optional[bool] = None

    # Contributions
    contribution_type: Optional[str] = None
    contribution_id: Optional[str] = None

    # Achievements
    achievement_id: Optional[str] = None
    achievement_title: Optional[str] = None
    points: Optional[int] = None

    # Acquisition
    referrer: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

    # Errors
    error_message: Optional[str] = None
    error_stack: Optional[str] = None
    error_context: Optional[str] = None

    # Environment context added by the recorder
    user_agent: Optional[str] = None
    url: Optional[str] = None
    viewport: Optional[Viewport] = None

    custom_properties: Optional[dict[str, Any]] = None


class AnalyticsEvent(BaseModel):
    """
    A single immutable record of a user action.

    Attributes:
        id: Unique event identifier
        session_id: Session the event belongs to (None only for a session_end
            emitted while no session was active)
        user_id: Identity the event is attributed to
        type: Kind of event
        timestamp: When the event was recorded (UTC)
        page: Path of the page the user was on
        metadata: Event-specific details
    """

    id: str
    session_id: Optional[str] = None
    user_id: str
    type: EventType
    timestamp: UtcDateTime
    page: str = "/"
    metadata: EventMetadata = Field(default_factory=EventMetadata)


# ==============================================================================
# Sessions
# ==============================================================================


class DeviceInfo(BaseModel):
    """Read-only snapshot of the device a session was recorded on."""

    user_agent: str = ""
    platform: str = ""
    browser: str = "unknown"
    screen_resolution: str = ""
    viewport_size: str = ""
    device_type: DeviceType = DeviceType.DESKTOP
    is_touch_device: bool = False
    connection_type: str = "unknown"
    effective_connection_type: str = "unknown"
    save_data: bool = False


class Session(BaseModel):
    """
    A bounded run of user activity on one device.

    A session is active until it is ended explicitly or its age reaches
    the inactivity timeout. Closed sessions carry end_time and duration.
    """

    session_id: str
    user_id: str
    start_time: UtcDateTime
    end_time: Optional[UtcDateTime] = None
    duration: Optional[int] = Field(default=None, description="Seconds, floored")
    page_views: int = 0
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    exit_page: Optional[str] = None
    last_activity: Optional[UtcDateTime] = None

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None


# ==============================================================================
# Incrementally Maintained Side Records
# ==============================================================================


class ContentMetrics(BaseModel):
    """
    Running counters for one piece of content.

    completion_rate is completions / views, or +inf when a completion was
    recorded without any view. JSON has no infinity, so the value is
    written as null and read back as +inf.
    """

    content_id: str
    content_type: ContentType
    title: str = ""
    views: int = 0
    completions: int = 0
    completion_rate: float = 0.0
    unique_viewers: int = 0
    viewer_ids: list[str] = Field(default_factory=list)
    bookmark_count: int = 0
    share_count: int = 0
    last_viewed: Optional[UtcDateTime] = None

    @field_validator("completion_rate", mode="before")
    @classmethod
    def _null_rate_is_infinite(cls, value: Any) -> Any:
        return math.inf if value is None else value

    @field_serializer("completion_rate", when_used="json")
    def _infinite_rate_is_null(self, value: float) -> Optional[float]:
        return None if math.isinf(value) else value


class SearchQuery(BaseModel):
    query: str
    timestamp: UtcDateTime
    results_count: int = 0
    clicked_result: Optional[str] = None
    user_id: str


class RecommendationMetrics(BaseModel):
    content_id: str
    content_type: ContentType
    impressions: int = 0
    clicks: int = 0
    click_through_rate: float = 0.0
    position: float = Field(default=0.0, description="Average position shown")


class Consent(BaseModel):
    granted: bool = True
    granted_at: Optional[UtcDateTime] = None
    revoked_at: Optional[UtcDateTime] = None


class ContentItem(BaseModel):
    """Catalog entry supplied by the content layer."""

    id: str
    title: str
    content_type: ContentType
    section: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    difficulty: Optional[Difficulty] = None


# ==============================================================================
# Derived Metrics
# ==============================================================================


class SectionVisit(BaseModel):
    section: str
    visit_count: int
    total_time_spent: float


class ContentTypePreference(BaseModel):
    content_type: ContentType
    count: int
    percentage: float


class UserBehaviorMetrics(BaseModel):
    user_id: str
    total_sessions: int = 0
    total_session_time: int = 0
    average_session_duration: int = 0
    average_page_views_per_session: float = 0.0
    total_page_views: int = 0
    total_articles_read: int = 0
    total_tutorials_completed: int = 0
    total_paths_completed: int = 0
    total_exercises_completed: int = 0
    total_code_executions: int = 0
    total_searches: int = 0
    successful_search_rate: float = 0.0
    bounce_rate: float = 0.0
    return_visits: int = 0
    last_activity: Optional[datetime] = None
    most_visited_sections: list[SectionVisit] = Field(default_factory=list)
    preferred_content_types: list[ContentTypePreference] = Field(default_factory=list)
    preferred_difficulty_level: Optional[Difficulty] = None
    most_active_hour: Optional[int] = None
    most_active_time_of_day: TimePeriod = TimePeriod.MORNING
    most_active_day_of_week: DayOfWeek = DayOfWeek.MONDAY


class ContentPerformanceMetrics(BaseModel):
    content_type: ContentType
    content_id: str
    content_title: str = ""
    section: Optional[str] = None
    total_views: int = 0
    unique_views: int = 0
    completions: int = 0
    completion_rate: float = 0.0
    average_time_spent: float = 0.0
    average_scroll_depth: float = 0.0
    bounce_rate: float = 0.0
    exit_rate: float = 0.0
    shares: int = 0
    bookmarks: int = 0
    search_referrals: int = 0
    last_viewed: Optional[datetime] = None
    trending: bool = False
    difficulty: Optional[Difficulty] = None
    tags: list[str] = Field(default_factory=list)


class TopSearchItem(BaseModel):
    query: str
    search_count: int
    click_rate: float
    average_result_position: float


class ErrorMetric(BaseModel):
    error_message: str
    count: int
    last_occurred: datetime
    affected_pages: list[str]


class ConversionMetrics(BaseModel):
    """Distinct-user conversion between learning stages, in percent."""

    article_to_tutorial: float = 0.0
    tutorial_to_path: float = 0.0
    path_to_completion: float = 0.0


class EngagementMetrics(BaseModel):
    average_page_views_per_session: float = 0.0
    average_session_duration: int = 0
    average_articles_per_session: float = 0.0
    average_tutorials_per_session: float = 0.0
    return_user_rate: float = 0.0
    average_time_between_sessions: float = Field(default=0.0, description="Hours")


class ContentTypeStats(BaseModel):
    total_views: int = 0
    unique_views: int = 0
    completions: int = 0
    completion_rate: float = 0.0
    average_time_spent: float = 0.0
    top_content: list[str] = Field(default_factory=list)


class ContentTypeMetrics(BaseModel):
    articles: ContentTypeStats = Field(default_factory=ContentTypeStats)
    tutorials: ContentTypeStats = Field(default_factory=ContentTypeStats)
    paths: ContentTypeStats = Field(default_factory=ContentTypeStats)
    exercises: ContentTypeStats = Field(default_factory=ContentTypeStats)


class PlatformAnalytics(BaseModel):
    timeframe: Timeframe
    start_date: datetime
    end_date: datetime
    total_users: int = 0
    active_users: int = 0
    new_users: int = 0
    total_sessions: int = 0
    total_page_views: int = 0
    average_session_duration: int = 0
    bounce_rate: float = 0.0
    top_content: list[ContentPerformanceMetrics] = Field(default_factory=list)
    top_searches: list[TopSearchItem] = Field(default_factory=list)
    top_errors: list[ErrorMetric] = Field(default_factory=list)
    conversion_rates: ConversionMetrics = Field(default_factory=ConversionMetrics)
    engagement_metrics: EngagementMetrics = Field(default_factory=EngagementMetrics)
    content_performance: ContentTypeMetrics = Field(default_factory=ContentTypeMetrics)


class FunnelStepDefinition(BaseModel):
    step_name: str
    event_type: EventType


class FunnelStep(BaseModel):
    step_name: str
    step_number: int
    count: int
    drop_off: int
    conversion_rate: float


class ConversionFunnel(BaseModel):
    name: str
    start_date: datetime
    end_date: datetime
    steps: list[FunnelStep] = Field(default_factory=list)
    overall_conversion: float = 0.0


class TimeSeriesPoint(BaseModel):
    timestamp: datetime
    value: int = 0
    label: str = ""


class TimeSeriesData(BaseModel):
    metric: TimeSeriesMetric
    period: AggregationPeriod
    data: list[TimeSeriesPoint] = Field(default_factory=list)


class RealTimePage(BaseModel):
    page: str
    visitors: int
    avg_time_on_page: float


class RealTimeAnalytics(BaseModel):
    current_users: int = 0
    active_sessions: list[Session] = Field(default_factory=list)
    top_pages: list[RealTimePage] = Field(default_factory=list)
    recent_events: list[AnalyticsEvent] = Field(default_factory=list)


class InsightType(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class InsightCategory(str, Enum):
    ENGAGEMENT = "engagement"
    CONTENT = "content"
    PERFORMANCE = "performance"
    USER = "user"
    ERROR = "error"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class AnalyticsInsight(BaseModel):
    type: InsightType
    category: InsightCategory
    title: str
    description: str
    metric: str
    value: float
    impact: Impact
    detail: Optional[str] = None


class AnalyticsReport(BaseModel):
    title: str
    description: str
    generated_at: datetime
    timeframe: Timeframe
    summary: PlatformAnalytics
    top_content: list[ContentPerformanceMetrics] = Field(default_factory=list)
    user_behavior: list[UserBehaviorMetrics] = Field(default_factory=list)
    insights: list[AnalyticsInsight] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class AnalyticsSnapshot(BaseModel):
    """Full export of one device's stores."""

    events: list[AnalyticsEvent] = Field(default_factory=list)
    sessions: list[Session] = Field(default_factory=list)
    current_session: Optional[Session] = None
    content_metrics: list[ContentMetrics] = Field(default_factory=list)
    searches: list[SearchQuery] = Field(default_factory=list)
    recommendations: list[RecommendationMetrics] = Field(default_factory=list)
    consent: Optional[Consent] = None
    exported_at: UtcDateTime
