# ==============================================================================
# Insight & Recommendation Rules
# ==============================================================================
"""
Rule-based interpretation of platform analytics.

Insights are produced from fixed thresholds; each negative insight maps to
a short list of canned recommendations. Recommendations are de-duplicated
in order and capped.
"""

from wikipulse.core.models import (
    AnalyticsInsight,
    Impact,
    InsightCategory,
    InsightType,
    PlatformAnalytics,
)

HIGH_SESSION_DURATION = 300
LOW_SESSION_DURATION = 120
HIGH_BOUNCE_RATE = 60
LOW_BOUNCE_RATE = 40
HIGH_TUTORIAL_COMPLETION = 50
LOW_TUTORIAL_COMPLETION = 20
FREQUENT_ERROR_COUNT = 10
MAX_RECOMMENDATIONS = 5

_ENGAGEMENT_RECOMMENDATIONS = {
    "average_session_duration": [
        "Consider adding more interactive content to increase session duration",
        "Improve content discoverability with better navigation",
    ],
    "bounce_rate": [
        "Add related content suggestions at the end of articles",
        "Improve internal linking between related topics",
    ],
}

_TUTORIAL_RECOMMENDATIONS = [
    "Review tutorial difficulty and adjust prerequisites",
    "Add more checkpoints and progress indicators in tutorials",
    "Provide better hints and guidance for difficult exercises",
]


def generate_insights(analytics: PlatformAnalytics) -> list[AnalyticsInsight]:
    """Apply the threshold rules to one platform summary."""
    insights: list[AnalyticsInsight] = []

    duration = analytics.average_session_duration
    if duration > HIGH_SESSION_DURATION:
        insights.append(
            AnalyticsInsight(
                type=InsightType.POSITIVE,
                category=InsightCategory.ENGAGEMENT,
                title="High user engagement",
                description=f"Average session duration is {duration // 60} minutes",
                metric="average_session_duration",
                value=duration,
                impact=Impact.HIGH,
            )
        )
    elif duration < LOW_SESSION_DURATION:
        insights.append(
            AnalyticsInsight(
                type=InsightType.NEGATIVE,
                category=InsightCategory.ENGAGEMENT,
                title="Low session duration",
                description="Average session duration is below 2 minutes",
                metric="average_session_duration",
                value=duration,
                impact=Impact.HIGH,
            )
        )

    bounce_rate = analytics.bounce_rate
    if bounce_rate > HIGH_BOUNCE_RATE:
        insights.append(
            AnalyticsInsight(
                type=InsightType.NEGATIVE,
                category=InsightCategory.ENGAGEMENT,
                title="High bounce rate",
                description=f"{int(bounce_rate)}% of users leave after viewing a single page",
                metric="bounce_rate",
                value=bounce_rate,
                impact=Impact.HIGH,
            )
        )
    elif bounce_rate < LOW_BOUNCE_RATE:
        insights.append(
            AnalyticsInsight(
                type=InsightType.POSITIVE,
                category=InsightCategory.ENGAGEMENT,
                title="Low bounce rate",
                description="Users are engaging with multiple pages per session",
                metric="bounce_rate",
                value=bounce_rate,
                impact=Impact.MEDIUM,
            )
        )

    tutorial_rate = analytics.content_performance.tutorials.completion_rate
    if tutorial_rate > HIGH_TUTORIAL_COMPLETION:
        insights.append(
            AnalyticsInsight(
                type=InsightType.POSITIVE,
                category=InsightCategory.CONTENT,
                title="High tutorial completion rate",
                description=f"{int(tutorial_rate)}% of users complete tutorials",
                metric="tutorial_completion_rate",
                value=tutorial_rate,
                impact=Impact.HIGH,
            )
        )
    elif tutorial_rate < LOW_TUTORIAL_COMPLETION:
        insights.append(
            AnalyticsInsight(
                type=InsightType.NEGATIVE,
                category=InsightCategory.CONTENT,
                title="Low tutorial completion rate",
                description="Most users are not finishing tutorials",
                metric="tutorial_completion_rate",
                value=tutorial_rate,
                impact=Impact.HIGH,
            )
        )

    if analytics.top_errors:
        top_error = analytics.top_errors[0]
        insights.append(
            AnalyticsInsight(
                type=InsightType.NEGATIVE,
                category=InsightCategory.ERROR,
                title="Errors detected",
                description=f"{len(analytics.top_errors)} unique errors occurred in this period",
                metric="error_count",
                value=len(analytics.top_errors),
                impact=Impact.HIGH if top_error.count > FREQUENT_ERROR_COUNT else Impact.MEDIUM,
                detail=top_error.error_message,
            )
        )

    return insights


def generate_recommendations(insights: list[AnalyticsInsight]) -> list[str]:
    """Map insights to recommendations, de-duplicated in order and capped."""
    recommendations: list[str] = []
    for insight in insights:
        if insight.category == InsightCategory.ENGAGEMENT:
            if insight.type == InsightType.NEGATIVE:
                recommendations.extend(_ENGAGEMENT_RECOMMENDATIONS.get(insight.metric, []))
        elif insight.category == InsightCategory.CONTENT:
            if insight.metric == "tutorial_completion_rate" and insight.type == InsightType.NEGATIVE:
                recommendations.extend(_TUTORIAL_RECOMMENDATIONS)
        elif insight.category == InsightCategory.ERROR:
            recommendations.append(
                f'Prioritize fixing the most frequent error: "{insight.detail or insight.title}"'
            )
            recommendations.append("Implement error tracking to identify patterns")

    return list(dict.fromkeys(recommendations))[:MAX_RECOMMENDATIONS]
