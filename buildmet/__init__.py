"""buildmet - admin analytics for a building-code question-answering service."""

from .analytics import compute_conversation_analytics, compute_feature_usage, compute_user_activity
from .querylog import QueryLogFilters, build_query_log
from .report import assemble_report
from .service import AnalyticsService
from .timewindow import InvalidRangeError, resolve_time_window
from .uptime import StaticUptimeProvider, UptimeRobotProvider

__all__ = [
    "AnalyticsService",
    "InvalidRangeError",
    "QueryLogFilters",
    "StaticUptimeProvider",
    "UptimeRobotProvider",
    "assemble_report",
    "build_query_log",
    "compute_conversation_analytics",
    "compute_feature_usage",
    "compute_user_activity",
    "resolve_time_window",
]

__version__ = "0.1.0"
