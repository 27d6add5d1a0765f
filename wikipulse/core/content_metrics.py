# ==============================================================================
# Content & Recommendation Counters - Pure Domain Logic
# ==============================================================================
"""
Update rules for the incrementally maintained side records.

Content metrics and recommendation metrics are not derived from the event
log on read; the recorder updates them synchronously in the same call that
appends the event. The rules live here so they can be tested on plain lists.
"""

import math
from datetime import datetime
from typing import Literal

from wikipulse.core.models import (
    AnalyticsEvent,
    ContentMetrics,
    ContentType,
    EventType,
    RecommendationMetrics,
)

ContentAction = Literal["view", "complete"]

# Events that count as someone opening a piece of content
VIEW_EVENT_TYPES = frozenset(
    {
        EventType.ARTICLE_VIEW,
        EventType.TUTORIAL_START,
        EventType.TUTORIAL_VIEW,
        EventType.PATH_START,
        EventType.PATH_VIEW,
        EventType.EXERCISE_ATTEMPT,
    }
)

# Events that count as someone finishing a piece of content
COMPLETION_EVENT_TYPES = frozenset(
    {
        EventType.ARTICLE_COMPLETE,
        EventType.TUTORIAL_COMPLETE,
        EventType.PATH_COMPLETE,
        EventType.EXERCISE_COMPLETE,
    }
)


def is_completion(event: AnalyticsEvent) -> bool:
    """Whether an event finishes a piece of content (including passed exercises)."""
    if event.type in COMPLETION_EVENT_TYPES:
        return True
    return event.type == EventType.EXERCISE_ATTEMPT and bool(event.metadata.completed)


def content_actions(event: AnalyticsEvent) -> list[ContentAction]:
    """
    Content counter updates implied by an event.

    An exercise attempt that passes counts as both a view and a completion.
    Events without a content id and type imply nothing.
    """
    if not event.metadata.content_id or event.metadata.content_type is None:
        return []
    actions: list[ContentAction] = []
    if event.type in VIEW_EVENT_TYPES:
        actions.append("view")
    if is_completion(event):
        actions.append("complete")
    return actions


def completion_rate(views: int, completions: int) -> float:
    """completions / views, or +inf when there are no views."""
    if views == 0:
        return math.inf
    return completions / views


def apply_content_action(
    metrics: list[ContentMetrics],
    content_id: str,
    content_type: ContentType,
    title: str,
    action: ContentAction,
    now: datetime,
    user_id: str | None = None,
) -> ContentMetrics:
    """
    Apply a view or completion to the metrics for (content_id, content_type).

    Creates the record on first use. Mutates the list (and the matching
    record) in place and returns the updated record.
    """
    existing = find_content_metrics(metrics, content_id, content_type)

    if existing is None:
        views = 1 if action == "view" else 0
        completions = 1 if action == "complete" else 0
        viewer_ids = [user_id] if action == "view" and user_id else []
        existing = ContentMetrics(
            content_id=content_id,
            content_type=content_type,
            title=title,
            views=views,
            completions=completions,
            completion_rate=completion_rate(views, completions),
            unique_viewers=len(viewer_ids),
            viewer_ids=viewer_ids,
            last_viewed=now if action == "view" else None,
        )
        metrics.append(existing)
        return existing

    if action == "view":
        existing.views += 1
        existing.last_viewed = now
        if user_id and user_id not in existing.viewer_ids:
            existing.viewer_ids.append(user_id)
            existing.unique_viewers = len(existing.viewer_ids)
    else:
        existing.completions += 1
    if title and not existing.title:
        existing.title = title
    existing.completion_rate = completion_rate(existing.views, existing.completions)
    return existing


def find_content_metrics(
    metrics: list[ContentMetrics], content_id: str, content_type: ContentType
) -> ContentMetrics | None:
    for record in metrics:
        if record.content_id == content_id and record.content_type == content_type:
            return record
    return None


def apply_impression(
    recommendations: list[RecommendationMetrics],
    content_id: str,
    content_type: ContentType,
    position: float,
) -> RecommendationMetrics:
    """
    Count one impression of a recommended item shown at `position`.

    The average position is a running mean over all impressions.
    """
    existing = _find_recommendation(recommendations, content_id)
    if existing is None:
        existing = RecommendationMetrics(
            content_id=content_id,
            content_type=content_type,
            impressions=1,
            clicks=0,
            click_through_rate=0.0,
            position=position,
        )
        recommendations.append(existing)
        return existing

    previous = existing.impressions
    existing.position = (existing.position * previous + position) / (previous + 1)
    existing.impressions = previous + 1
    existing.click_through_rate = existing.clicks / existing.impressions
    return existing


def apply_click(
    recommendations: list[RecommendationMetrics],
    content_id: str,
    content_type: ContentType,
    position: float,
) -> RecommendationMetrics:
    """
    Count a click on a recommended item.

    A click on an item with no recorded impression counts as one impression
    and one click.
    """
    existing = _find_recommendation(recommendations, content_id)
    if existing is None:
        existing = RecommendationMetrics(
            content_id=content_id,
            content_type=content_type,
            impressions=1,
            clicks=1,
            click_through_rate=1.0,
            position=position,
        )
        recommendations.append(existing)
        return existing

    existing.clicks += 1
    existing.click_through_rate = (
        existing.clicks / existing.impressions if existing.impressions > 0 else 0.0
    )
    return existing


def _find_recommendation(
    recommendations: list[RecommendationMetrics], content_id: str
) -> RecommendationMetrics | None:
    return next((r for r in recommendations if r.content_id == content_id), None)
