"""Pure analytics functions over user and conversation snapshots."""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence

from dateutil.relativedelta import relativedelta

from .models import (
    FAILED_QUERY_TYPES,
    REPORTED_REGIONS,
    Conversation,
    QueryType,
    Region,
    Role,
    Theme,
    TimeWindow,
    User,
    Vote,
)
from .timewindow import periods_in_window

RETURN_THRESHOLD = timedelta(hours=1)

# Fixed rolling periods for the sign-up and log-in KPIs, anchored to "now".
ROLLING_PERIODS = {
    "today": relativedelta(days=1),
    "this_week": relativedelta(days=7),
    "this_month": relativedelta(months=1),
    "this_year": relativedelta(years=1),
}

# Period lengths in days used to spread window totals into averages.
AVERAGING_PERIODS = {
    "per_day": 1,
    "per_week": 7,
    "per_month": 30,
    "per_year": 365,
}

HOURS_PER_DAY = 24


def compute_user_activity(users: Iterable[User], window: TimeWindow, now: datetime) -> Dict:
    """
    Compute account activity metrics for a window.

    Sign-up and log-in counts use fixed periods before ``now`` regardless of
    the window. DAU/WAU/MAU trail ``window.end`` so historical windows still
    report who was active at the time.
    """
    active = [user for user in users if not user.is_deleted]

    sign_ups = {
        name: sum(1 for user in active if user.created_at >= now - delta)
        for name, delta in ROLLING_PERIODS.items()
    }
    log_ins = {
        name: sum(1 for user in active if user.last_login is not None and user.last_login >= now - delta)
        for name, delta in ROLLING_PERIODS.items()
    }

    logged_in_during = [user for user in active if window.contains(user.last_login)]

    cohort = [user for user in active if window.contains(user.created_at)]
    returned = sum(
        1
        for user in cohort
        if user.last_login is not None and abs(user.last_login - user.created_at) > RETURN_THRESHOLD
    )

    session_gap_days = 0.0
    multi_session_users = 0
    for user in logged_in_during:
        days_since_creation = abs(user.last_login - user.created_at).total_seconds() / 86400
        if days_since_creation > 1:
            session_gap_days += days_since_creation
            multi_session_users += 1

    existing = [user for user in active if user.created_at < window.start]
    churned = sum(1 for user in existing if user.last_login is None or user.last_login < window.start)
    returning = sum(1 for user in existing if window.contains(user.last_login))

    return {
        "total_users": len(active),
        "active_users_in_range": len(logged_in_during),
        "sign_ups": sign_ups,
        "log_ins": log_ins,
        "retention": {
            "cohort_size": len(cohort),
            "returned_users": returned,
            "retention_rate": _percentage(returned, len(cohort)),
        },
        "session_frequency": {
            "multi_session_users": multi_session_users,
            "avg_days_between_sessions": _ratio(session_gap_days, multi_session_users),
        },
        "churn": {
            "existing_users": len(existing),
            "churned_users": churned,
            "churn_rate": _percentage(churned, len(existing)),
        },
        "new_users_in_range": len(cohort),
        "returning_users_in_range": returning,
        "active_users": {
            "dau": _logins_before(active, window.end, timedelta(days=1)),
            "wau": _logins_before(active, window.end, timedelta(days=7)),
            "mau": _logins_before(active, window.end, timedelta(days=30)),
        },
    }


def compute_conversation_analytics(
    conversations: Iterable[Conversation],
    window: TimeWindow,
    active_users_in_range: int,
) -> Dict:
    """
    Fold conversations and their messages into usage, quality and feedback metrics.

    ``conversations`` must already be limited to non-archived conversations
    updated inside ``window``.
    """
    conversations_list = list(conversations)
    if not conversations_list:
        return empty_conversation_analytics(window)

    total_messages = 0
    conversations_with_followups = 0
    region_counts = {region: 0 for region in REPORTED_REGIONS}
    region_users = {region: set() for region in REPORTED_REGIONS}

    total_regulation_messages = 0
    total_confidence = 0.0
    total_response_time = 0.0
    query_types = {query_type.value: 0 for query_type in QueryType}
    failed_queries = 0
    building_types: Dict[str, int] = {}

    total_edits = 0
    helpful_count = 0
    unhelpful_count = 0

    for conversation in conversations_list:
        if not conversation.messages:
            continue

        total_messages += len(conversation.messages)
        if conversation.region in region_counts:
            region_counts[conversation.region] += 1
            if conversation.user_id:
                region_users[conversation.region].add(conversation.user_id)
        if len(conversation.messages) > 2:
            conversations_with_followups += 1

        for message in conversation.messages:
            if message.is_edited:
                total_edits += 1

            regulation = message.regulation
            if message.role is Role.ASSISTANT and regulation is not None:
                total_regulation_messages += 1
                if regulation.confidence is not None:
                    total_confidence += regulation.confidence
                if regulation.processing_time is not None:
                    total_response_time += regulation.processing_time
                query_types[regulation.query_type.value] += 1
                if regulation.query_type in FAILED_QUERY_TYPES:
                    failed_queries += 1
                if regulation.building_type is not None:
                    key = regulation.building_type.value
                    building_types[key] = building_types.get(key, 0) + 1

            if message.user_vote is Vote.HELPFUL:
                helpful_count += 1
            elif message.user_vote is Vote.UNHELPFUL:
                unhelpful_count += 1

    hourly_data, peak_hour = _peak_usage(conversations_list, window)

    conversation_count = len(conversations_list)
    avg_messages_per_user = _ratio(total_messages, active_users_in_range)
    failed_query_rate = _percentage(failed_queries, total_regulation_messages)

    return {
        "messages": {
            "total": total_messages,
            "averages": _spread_over_window(total_messages, window),
        },
        "messages_per_user": {
            "avg": avg_messages_per_user,
            "averages": _spread_over_window(avg_messages_per_user, window),
        },
        "conversations": {
            "count": conversation_count,
            "total_length": total_messages,
            "avg_length": _ratio(total_messages, conversation_count),
            "with_followups": conversations_with_followups,
            "follow_up_rate": _percentage(conversations_with_followups, conversation_count),
        },
        "queries": {
            "total_regulation_messages": total_regulation_messages,
            "type_distribution": query_types,
            "failed": failed_queries,
            "failed_rate": failed_query_rate,
            "avg_confidence": _ratio(total_confidence, total_regulation_messages),
            "avg_response_time": _ratio(total_response_time, total_regulation_messages),
            "error_rate": failed_query_rate,
        },
        "edits": {
            "total": total_edits,
            "edit_rate": _percentage(total_edits, total_messages),
        },
        "feedback": {
            "helpful": helpful_count,
            "unhelpful": unhelpful_count,
            "helpful_rate": _percentage(helpful_count, helpful_count + unhelpful_count),
            "helpful_averages": _spread_over_window(helpful_count, window),
            "unhelpful_averages": _spread_over_window(unhelpful_count, window),
        },
        "region_usage": _region_shares(region_counts),
        "region_usage_by_users": _region_shares(
            {region: len(user_ids) for region, user_ids in region_users.items()}
        ),
        "peak_usage": {
            "peak_hour": peak_hour,
            "hourly_data": hourly_data,
        },
        "professional_use_cases": _professional_use_cases(building_types, total_regulation_messages),
    }


def compute_feature_usage(users: Iterable[User]) -> Dict:
    """All-time theme and jurisdiction preferences across non-deleted users."""
    active = [user for user in users if not user.is_deleted]
    if not active:
        return empty_feature_usage()

    dark = sum(1 for user in active if user.theme is Theme.DARK)
    light = sum(1 for user in active if user.theme is Theme.LIGHT)

    jurisdictions: Dict[str, int] = {}
    for user in active:
        if user.primary_jurisdiction:
            jurisdictions[user.primary_jurisdiction] = jurisdictions.get(user.primary_jurisdiction, 0) + 1

    return {
        "theme_usage": {
            "dark": dark,
            "light": light,
            "dark_percentage": _percentage(dark, dark + light),
            "light_percentage": _percentage(light, dark + light),
        },
        "region_selection": dict(sorted(jurisdictions.items(), key=lambda item: (-item[1], item[0]))),
    }


def empty_conversation_analytics(window: TimeWindow) -> Dict:
    """Return empty conversation analytics structure."""
    zero_averages = _spread_over_window(0, window)
    return {
        "messages": {"total": 0, "averages": dict(zero_averages)},
        "messages_per_user": {"avg": 0.0, "averages": dict(zero_averages)},
        "conversations": {
            "count": 0,
            "total_length": 0,
            "avg_length": 0.0,
            "with_followups": 0,
            "follow_up_rate": 0.0,
        },
        "queries": {
            "total_regulation_messages": 0,
            "type_distribution": {query_type.value: 0 for query_type in QueryType},
            "failed": 0,
            "failed_rate": 0.0,
            "avg_confidence": 0.0,
            "avg_response_time": 0.0,
            "error_rate": 0.0,
        },
        "edits": {"total": 0, "edit_rate": 0.0},
        "feedback": {
            "helpful": 0,
            "unhelpful": 0,
            "helpful_rate": 0.0,
            "helpful_averages": dict(zero_averages),
            "unhelpful_averages": dict(zero_averages),
        },
        "region_usage": _region_shares({region: 0 for region in REPORTED_REGIONS}),
        "region_usage_by_users": _region_shares({region: 0 for region in REPORTED_REGIONS}),
        "peak_usage": {"peak_hour": 0, "hourly_data": [0] * HOURS_PER_DAY},
        "professional_use_cases": [],
    }


def empty_feature_usage() -> Dict:
    """Return empty feature usage structure."""
    return {
        "theme_usage": {
            "dark": 0,
            "light": 0,
            "dark_percentage": 0.0,
            "light_percentage": 0.0,
        },
        "region_selection": {},
    }


def _logins_before(users: Sequence[User], end: datetime, span: timedelta) -> int:
    start = end - span
    return sum(1 for user in users if user.last_login is not None and start <= user.last_login <= end)


def _peak_usage(conversations: Sequence[Conversation], window: TimeWindow) -> tuple[list[int], int]:
    hourly = [0] * HOURS_PER_DAY
    peak_hour = 0
    peak_count = 0
    for conversation in conversations:
        hour = _local_hour(conversation.created_at, window)
        hourly[hour] += 1
        # Strict comparison keeps the earliest hour to reach a tied maximum.
        if hourly[hour] > peak_count:
            peak_count = hourly[hour]
            peak_hour = hour
    return hourly, peak_hour


def _local_hour(instant: datetime, window: TimeWindow) -> int:
    tz = window.end.tzinfo
    if tz is None or instant.tzinfo is None:
        return instant.hour
    return instant.astimezone(tz).hour


def _spread_over_window(total: float, window: TimeWindow) -> Dict[str, float]:
    return {
        name: total / periods_in_window(window, days)
        for name, days in AVERAGING_PERIODS.items()
    }


def _region_shares(counts: Dict[Region, int]) -> List[Dict]:
    total = sum(counts.values())
    return [
        {
            "region": region.value,
            "count": counts.get(region, 0),
            "percentage": _percentage(counts.get(region, 0), total),
        }
        for region in REPORTED_REGIONS
    ]


def _professional_use_cases(building_types: Dict[str, int], total_regulation_messages: int) -> List[Dict]:
    ranked = sorted(building_types.items(), key=lambda item: -item[1])
    return [
        {
            "building_type": building_type,
            "count": count,
            "percentage": _percentage(count, total_regulation_messages),
        }
        for building_type, count in ranked
    ]


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _percentage(part: float, total: float) -> float:
    return part / total * 100 if total > 0 else 0.0
