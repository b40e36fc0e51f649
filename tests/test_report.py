import json
from datetime import datetime, timezone

from buildmet.analytics import (
    compute_conversation_analytics,
    compute_feature_usage,
    compute_user_activity,
    empty_conversation_analytics,
    empty_feature_usage,
)
from buildmet.models import Conversation, Message, QueryType, Region, Regulation, Role, User
from buildmet.report import assemble_report
from buildmet.timewindow import resolve_time_window

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)

REPORT_SECTIONS = {
    "userSignUps",
    "userLogIns",
    "engagement",
    "messages",
    "messagesPerUser",
    "queryAnalysis",
    "featureUsage",
    "feedback",
    "regionUsage",
    "regionUsageByUsers",
    "activeUsers",
    "peakUsageHours",
    "professionalUseCases",
    "technicalPerformance",
    "metadata",
}


def test_assemble_report_from_empty_inputs():
    window = resolve_time_window("week", NOW)

    report = assemble_report(window, {}, {}, {}, uptime=None)

    assert set(report) == REPORT_SECTIONS
    assert report["engagement"]["retentionRate"] == 0.0
    assert report["queryAnalysis"]["followUpRate"] == 0.0
    assert report["queryAnalysis"]["queryTypeDistribution"]["unknown"] == 0
    assert report["peakUsageHours"]["hourlyData"] == [0] * 24
    assert report["peakUsageHours"]["peakHourLabel"] == "0:00"
    assert report["technicalPerformance"]["uptime"] == 99.9
    assert report["regionUsage"] == []
    assert report["metadata"]["timeRange"] == "week"


def test_assemble_report_from_empty_aggregates_is_json_serialisable():
    window = resolve_time_window("month", NOW)

    report = assemble_report(
        window,
        compute_user_activity([], window, NOW),
        empty_conversation_analytics(window),
        empty_feature_usage(),
        uptime=100.0,
        generated_at=NOW,
    )

    decoded = json.loads(json.dumps(report))
    assert decoded["messages"]["total"] == 0
    assert decoded["messages"]["avgPerDay"] == 0
    assert [entry["percentage"] for entry in decoded["regionUsage"]] == [0.0, 0.0, 0.0]
    assert decoded["metadata"]["startDate"] == "2026-02-15T00:00:00+00:00"
    assert decoded["metadata"]["generatedAt"] == NOW.isoformat()


def test_assemble_report_rounds_and_renames():
    window = resolve_time_window("custom", NOW, "2026-03-01", "2026-03-03")
    users = [
        User(id="a", created_at=datetime(2026, 3, 1, 8, tzinfo=timezone.utc), last_login=NOW),
        User(id="b", created_at=datetime(2026, 3, 1, 9, tzinfo=timezone.utc)),
        User(id="c", created_at=datetime(2026, 3, 2, 9, tzinfo=timezone.utc), last_login=NOW),
    ]
    answers = [
        Message(
            role=Role.ASSISTANT,
            content="a",
            regulation=Regulation(confidence=0.91234, processing_time=1.23456, query_type=query_type),
        )
        for query_type in (QueryType.BUILDING_CODES, QueryType.BUILDING_CODES, QueryType.OUT_OF_SCOPE)
    ]
    conversation = Conversation(
        id="c1",
        user_id="a",
        region=Region.SCOTLAND,
        created_at=datetime(2026, 3, 2, 17, 45, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 2, 18, tzinfo=timezone.utc),
        messages=tuple([Message(role=Role.USER, content="q")] + answers),
    )
    activity = compute_user_activity(users, window, NOW)

    report = assemble_report(
        window,
        activity,
        compute_conversation_analytics([conversation], window, activity["active_users_in_range"]),
        compute_feature_usage(users),
        uptime=99.87654,
    )

    assert report["engagement"]["retentionRate"] == 66.67
    assert report["engagement"]["newUsers"] == 3
    assert report["queryAnalysis"]["failedQueryRate"] == 33.33
    assert report["technicalPerformance"]["errorRate"] == 33.33
    assert report["technicalPerformance"]["avgResponseTime"] == 1.23
    assert report["technicalPerformance"]["uptime"] == 99.877
    assert report["metadata"]["avgConfidence"] == 0.912
    assert report["messages"] == {
        "total": 4,
        "avgPerDay": 1,
        "avgPerWeek": 4,
        "avgPerMonth": 4,
        "avgPerYear": 4,
    }
    assert report["regionUsage"][1] == {"region": "Scotland", "queries": 1, "percentage": 100.0}
    assert report["regionUsageByUsers"][1] == {"region": "Scotland", "users": 1, "percentage": 100.0}
    assert report["peakUsageHours"]["peakHour"] == 17
    assert report["peakUsageHours"]["peakHourLabel"] == "17:00"
    assert report["activeUsers"] == {"dau": 0, "wau": 0, "mau": 0}
