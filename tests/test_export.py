# ==============================================================================
# Tests for Reports, Export, Import and Reset
# ==============================================================================
"""
Tests for the reporter's snapshot operations and report assembly.
"""

import json
import math
from datetime import timedelta

from conftest import START_TIME, make_event

from wikipulse.core.models import ContentType, EventType, InsightType, Timeframe


def _seed(recorder, clock):
    """Record a small, varied history through the public write path."""
    recorder.track_article_view("intro", title="Intro")
    recorder.track_article_complete("orphan")
    recorder.track_search("decorators", 4)
    recorder.track_recommendation_impression("intro", ContentType.ARTICLE, 2)
    clock.advance(minutes=5)
    recorder.end_session()
    recorder.track_page_view("/")


# ==============================================================================
# Export / Import
# ==============================================================================


class TestExport:
    """Tests for export_analytics."""

    def test_document_shape(self, recorder, reporter, clock):
        _seed(recorder, clock)
        document = reporter.export_analytics()

        assert set(document) == {
            "events",
            "sessions",
            "current_session",
            "content_metrics",
            "searches",
            "recommendations",
            "consent",
            "exported_at",
        }
        assert len(document["sessions"]) == 1
        assert document["current_session"] is not None
        assert document["searches"][0]["query"] == "decorators"

    def test_infinite_rate_written_as_null(self, recorder, reporter, clock):
        _seed(recorder, clock)
        document = reporter.export_analytics()
        rates = {m["content_id"]: m["completion_rate"] for m in document["content_metrics"]}
        assert rates["orphan"] is None
        assert rates["intro"] == 0.0
        # Strict JSON: no Infinity literal
        json.dumps(document, allow_nan=False)

    def test_empty_store(self, reporter):
        document = reporter.export_analytics()
        assert document["events"] == []
        assert document["current_session"] is None


class TestImport:
    """Tests for import_analytics."""

    def test_round_trip(self, recorder, reporter, store, clock):
        _seed(recorder, clock)
        document = json.loads(json.dumps(reporter.export_analytics()))
        before = reporter.export_analytics()

        assert reporter.clear_analytics()
        assert reporter.import_analytics(document) is True

        after = reporter.export_analytics()
        assert after["events"] == before["events"]
        assert after["sessions"] == before["sessions"]
        assert after["current_session"] == before["current_session"]
        orphan = [m for m in store.content_metrics.load_all() if m.content_id == "orphan"][0]
        assert math.isinf(orphan.completion_rate)

    def test_invalid_payload_leaves_stores_untouched(self, recorder, reporter, store, clock):
        _seed(recorder, clock)
        before = reporter.export_analytics()

        bad = dict(before)
        bad["events"] = [{"id": "broken"}]
        assert reporter.import_analytics(bad) is False
        assert reporter.import_analytics({"events": []}) is False

        after = reporter.export_analytics()
        assert after["events"] == before["events"]
        assert after["content_metrics"] == before["content_metrics"]

    def test_missing_current_session_clears_slot(self, recorder, reporter, store, clock):
        _seed(recorder, clock)
        document = reporter.export_analytics()
        document["current_session"] = None

        assert reporter.import_analytics(document)
        assert store.current_session.load() is None

    def test_offset_free_timestamps_read_as_utc(self, reporter, store):
        document = reporter.export_analytics()
        event = make_event(EventType.PAGE_VIEW).model_dump(mode="json")
        event["timestamp"] = "2024-05-15T10:00:00"
        document["events"] = [event]

        assert reporter.import_analytics(document) is True
        assert store.events.load_all()[0].timestamp.utcoffset() == timedelta(0)
        platform = reporter.get_platform_analytics(Timeframe.LAST_7_DAYS)
        assert platform.total_page_views == 1

    def test_imported_consent_applies(self, recorder, reporter, clock):
        document = reporter.export_analytics()
        document["consent"] = {"granted": False, "revoked_at": START_TIME.isoformat()}

        assert reporter.import_analytics(document)
        assert recorder.has_consent() is False


class TestClear:
    """Tests for clear_analytics."""

    def test_activity_cleared(self, recorder, reporter, store, clock):
        _seed(recorder, clock)
        assert reporter.clear_analytics() is True

        assert store.events.load_all() == []
        assert store.sessions.load_all() == []
        assert store.searches.load_all() == []
        assert store.content_metrics.load_all() == []
        assert store.recommendations.load_all() == []
        assert store.current_session.load() is None

    def test_consent_and_identity_kept(self, recorder, reporter, store, clock):
        first = recorder.track_page_view("/")
        recorder.set_consent(False)

        reporter.clear_analytics()

        assert store.user_id.load() == first.user_id
        assert recorder.has_consent() is False


# ==============================================================================
# Reports
# ==============================================================================


class TestAnalyticsReport:
    """Tests for generate_analytics_report."""

    def test_defaults(self, recorder, reporter, clock):
        _seed(recorder, clock)
        report = reporter.generate_analytics_report(Timeframe.LAST_7_DAYS)

        assert report.title == "Analytics Report: last 7 days"
        assert report.description == "Comprehensive analytics report for last 7 days"
        assert report.generated_at == clock()
        assert report.summary.total_sessions == 1
        assert len(report.user_behavior) == 1

    def test_insights_and_recommendations(self, recorder, reporter, clock):
        _seed(recorder, clock)
        report = reporter.generate_analytics_report(Timeframe.TODAY)

        # One five-minute session without page views and no tutorials
        assert {(i.title, i.type) for i in report.insights} == {
            ("Low bounce rate", InsightType.POSITIVE),
            ("Low tutorial completion rate", InsightType.NEGATIVE),
        }
        assert report.recommendations == [
            "Review tutorial difficulty and adjust prerequisites",
            "Add more checkpoints and progress indicators in tutorials",
            "Provide better hints and guidance for difficult exercises",
        ]

    def test_explicit_users(self, reporter, store):
        store.events.append(make_event(EventType.PAGE_VIEW, user_id="u1"))
        report = reporter.generate_analytics_report(
            Timeframe.TODAY, title="Weekly", user_ids=["u1", "u2"]
        )
        assert report.title == "Weekly"
        assert [m.user_id for m in report.user_behavior] == ["u1", "u2"]
        assert report.user_behavior[1].total_sessions == 0

    def test_report_does_not_mutate_store(self, recorder, reporter, clock):
        _seed(recorder, clock)
        before = reporter.export_analytics()
        reporter.generate_analytics_report(Timeframe.ALL_TIME)
        assert reporter.export_analytics() == before
