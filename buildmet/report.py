"""Assemble aggregate outputs into the admin dashboard report."""

from datetime import datetime
from math import floor
from typing import Any, Dict, Mapping, Optional

from .models import QueryType, TimeWindow
from .uptime import DEFAULT_UPTIME

RATE_DIGITS = 2
DETAIL_DIGITS = 1
RESPONSE_TIME_DIGITS = 2
SCORE_DIGITS = 3


def assemble_report(
    window: TimeWindow,
    user_activity: Mapping,
    conversation_analytics: Mapping,
    feature_usage: Mapping,
    uptime: Optional[float] = DEFAULT_UPTIME,
    generated_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Merge aggregate dicts into one JSON-serialisable report.

    Missing sections or keys in the inputs are reported as zeros, so a
    partially populated aggregate never fails the report.
    """
    users = _Section(user_activity)
    conversations = _Section(conversation_analytics)
    features = _Section(feature_usage)

    active_users = {
        "dau": users.get("active_users", "dau"),
        "wau": users.get("active_users", "wau"),
        "mau": users.get("active_users", "mau"),
    }
    avg_response_time = _round(conversations.get("queries", "avg_response_time"), RESPONSE_TIME_DIGITS)
    peak_hour = int(conversations.get("peak_usage", "peak_hour"))
    hourly_data = list(conversations.get("peak_usage", "hourly_data", default=None) or [0] * 24)
    query_types = conversations.get("queries", "type_distribution", default=None) or {}

    return {
        "userSignUps": _rolling_counts(users.get("sign_ups", default=None)),
        "userLogIns": _rolling_counts(users.get("log_ins", default=None)),
        "engagement": {
            **active_users,
            "retentionRate": _rate(users.get("retention", "retention_rate")),
            "sessionFrequency": _round(
                users.get("session_frequency", "avg_days_between_sessions"), DETAIL_DIGITS
            ),
            "churnRate": _rate(users.get("churn", "churn_rate")),
            "newUsers": users.get("new_users_in_range"),
            "returningUsers": users.get("returning_users_in_range"),
        },
        "messages": {
            "total": conversations.get("messages", "total"),
            **_period_averages(conversations.get("messages", "averages", default=None), _round_half_up),
        },
        "messagesPerUser": _period_averages(
            conversations.get("messages_per_user", "averages", default=None),
            lambda value: _round(value, DETAIL_DIGITS),
        ),
        "queryAnalysis": {
            "queryTypeDistribution": {
                query_type.value: query_types.get(query_type.value, 0) for query_type in QueryType
            },
            "failedQueries": conversations.get("queries", "failed"),
            "failedQueryRate": _rate(conversations.get("queries", "failed_rate")),
            "followUpRate": _rate(conversations.get("conversations", "follow_up_rate")),
            "avgConversationLength": _round(conversations.get("conversations", "avg_length"), DETAIL_DIGITS),
        },
        "featureUsage": {
            "edits": conversations.get("edits", "total"),
            "editRate": _rate(conversations.get("edits", "edit_rate")),
            "themeUsage": {
                "dark": features.get("theme_usage", "dark"),
                "light": features.get("theme_usage", "light"),
                "darkPercentage": _rate(features.get("theme_usage", "dark_percentage")),
                "lightPercentage": _rate(features.get("theme_usage", "light_percentage")),
            },
            "regionSelection": dict(features.get("region_selection", default=None) or {}),
        },
        "feedback": _feedback(conversations),
        "regionUsage": _region_usage(conversations.get("region_usage", default=None), "queries"),
        "regionUsageByUsers": _region_usage(conversations.get("region_usage_by_users", default=None), "users"),
        "activeUsers": dict(active_users),
        "peakUsageHours": {
            "peakHour": peak_hour,
            "peakHourLabel": f"{peak_hour}:00",
            "hourlyData": hourly_data,
        },
        "professionalUseCases": [
            {
                "buildingType": entry["building_type"],
                "queries": entry["count"],
                "percentage": _rate(entry["percentage"]),
            }
            for entry in conversations.get("professional_use_cases", default=None) or []
        ],
        "technicalPerformance": {
            "avgResponseTime": avg_response_time,
            "errorRate": _rate(conversations.get("queries", "error_rate")),
            "uptime": _round(DEFAULT_UPTIME if uptime is None else uptime, SCORE_DIGITS),
        },
        "metadata": {
            "timeRange": window.range_token,
            "startDate": window.start.isoformat(),
            "endDate": window.end.isoformat(),
            "totalUsers": users.get("total_users"),
            "activeUsersInRange": users.get("active_users_in_range"),
            "avgConfidence": _round(conversations.get("queries", "avg_confidence"), SCORE_DIGITS),
            "avgResponseTime": avg_response_time,
            "generatedAt": generated_at.isoformat() if generated_at else None,
        },
    }


class _Section:
    """Nested lookups into an aggregate dict with a default for anything missing."""

    def __init__(self, data: Optional[Mapping]):
        self.data = data or {}

    def get(self, *path: str, default: Any = 0) -> Any:
        node: Any = self.data
        for key in path:
            if not isinstance(node, Mapping) or node.get(key) is None:
                return default
            node = node[key]
        return node


def _rolling_counts(counts: Optional[Mapping]) -> Dict[str, int]:
    counts = counts or {}
    return {
        "today": counts.get("today", 0),
        "thisWeek": counts.get("this_week", 0),
        "thisMonth": counts.get("this_month", 0),
        "thisYear": counts.get("this_year", 0),
    }


def _period_averages(averages: Optional[Mapping], rounder) -> Dict[str, float]:
    averages = averages or {}
    return {
        "avgPerDay": rounder(averages.get("per_day", 0)),
        "avgPerWeek": rounder(averages.get("per_week", 0)),
        "avgPerMonth": rounder(averages.get("per_month", 0)),
        "avgPerYear": rounder(averages.get("per_year", 0)),
    }


def _feedback(conversations: _Section) -> Dict[str, Any]:
    helpful = conversations.get("feedback", "helpful_averages", default=None) or {}
    unhelpful = conversations.get("feedback", "unhelpful_averages", default=None) or {}
    return {
        "helpful": conversations.get("feedback", "helpful"),
        "unhelpful": conversations.get("feedback", "unhelpful"),
        "helpfulRate": _rate(conversations.get("feedback", "helpful_rate")),
        "avgHelpfulPerDay": _round_half_up(helpful.get("per_day", 0)),
        "avgHelpfulPerMonth": _round_half_up(helpful.get("per_month", 0)),
        "avgHelpfulPerYear": _round_half_up(helpful.get("per_year", 0)),
        "avgUnhelpfulPerDay": _round(unhelpful.get("per_day", 0), DETAIL_DIGITS),
        "avgUnhelpfulPerMonth": _round_half_up(unhelpful.get("per_month", 0)),
        "avgUnhelpfulPerYear": _round_half_up(unhelpful.get("per_year", 0)),
    }


def _region_usage(entries, count_key: str) -> list:
    return [
        {
            "region": entry["region"],
            count_key: entry["count"],
            "percentage": _rate(entry["percentage"]),
        }
        for entry in entries or []
    ]


def _rate(value: float) -> float:
    return _round(value, RATE_DIGITS)


def _round(value: float, digits: int) -> float:
    return round(float(value), digits)


def _round_half_up(value: float) -> int:
    return int(floor(float(value) + 0.5))
