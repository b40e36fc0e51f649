"""Application service orchestrating repositories, uptime telemetry and pure analytics."""

import asyncio
import logging
from datetime import datetime, timezone, tzinfo
from typing import Callable, Dict, Optional

from .analytics import compute_conversation_analytics, compute_feature_usage, compute_user_activity
from .config import Settings
from .ports import MetricsRepository, UptimeProvider
from .querylog import DEFAULT_CONFIDENCE_THRESHOLD, QueryLogFilters, build_query_log
from .report import assemble_report
from .timewindow import DateLike, resolve_time_window
from .uptime import DEFAULT_UPTIME, StaticUptimeProvider, UptimeRobotProvider

logger = logging.getLogger(__name__)

# Far enough back to cover every conversation the query log could show.
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Upper bound on the uptime call, on top of the provider's own HTTP timeout.
DEFAULT_UPTIME_TIMEOUT = 10.0


class AnalyticsService:
    """Facade service that exposes the admin metrics independent of web frameworks."""

    def __init__(
        self,
        repo: MetricsRepository,
        uptime_provider: Optional[UptimeProvider] = None,
        clock: Optional[Callable[[], datetime]] = None,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        uptime_timeout: float = DEFAULT_UPTIME_TIMEOUT,
        uptime_fallback: float = DEFAULT_UPTIME,
    ):
        self.repo = repo
        self.uptime_provider = uptime_provider or StaticUptimeProvider()
        self.clock = clock or _utc_now
        self.confidence_threshold = confidence_threshold
        self.uptime_timeout = uptime_timeout
        self.uptime_fallback = uptime_fallback

    @classmethod
    def from_settings(cls, repo: MetricsRepository, settings: Settings) -> "AnalyticsService":
        uptime_provider = UptimeRobotProvider(
            api_key=settings.uptimerobot_api_key,
            url=settings.uptimerobot_url,
            timeout=settings.uptime_timeout_seconds,
            ratio_days=settings.uptime_ratio_days,
            fallback=settings.uptime_fallback,
        )
        return cls(
            repo,
            uptime_provider=uptime_provider,
            clock=_zoned_clock(settings.tzinfo),
            confidence_threshold=settings.query_log_confidence_threshold,
            uptime_timeout=settings.uptime_timeout_seconds * 2,
            uptime_fallback=settings.uptime_fallback,
        )

    async def generate_report(
        self,
        range_token: Optional[str] = None,
        custom_from: DateLike = None,
        custom_to: DateLike = None,
        now: Optional[datetime] = None,
    ) -> Dict:
        """
        Build the full admin metrics report for a dashboard range.

        Raises ``InvalidRangeError`` before any read when a custom range is
        malformed. Repository failures propagate; uptime failures do not.
        """
        now = now or self.clock()
        window = resolve_time_window(range_token, now, custom_from, custom_to)
        logger.info(
            "Generating metrics report for range=%s start=%s end=%s",
            window.range_token,
            window.start.isoformat(),
            window.end.isoformat(),
        )

        tasks = [
            asyncio.ensure_future(asyncio.to_thread(self.repo.fetch_users)),
            asyncio.ensure_future(asyncio.to_thread(self.repo.fetch_conversations, window.start, window.end)),
            asyncio.ensure_future(self._uptime()),
        ]
        try:
            users, conversations, uptime = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        user_activity = compute_user_activity(users, window, now)
        logger.debug(
            "User activity: retention=%.2f churn=%.2f dau=%s wau=%s mau=%s",
            user_activity["retention"]["retention_rate"],
            user_activity["churn"]["churn_rate"],
            user_activity["active_users"]["dau"],
            user_activity["active_users"]["wau"],
            user_activity["active_users"]["mau"],
        )
        conversation_analytics = compute_conversation_analytics(
            conversations,
            window,
            active_users_in_range=user_activity["active_users_in_range"],
        )
        feature_usage = compute_feature_usage(users)

        report = assemble_report(
            window,
            user_activity,
            conversation_analytics,
            feature_usage,
            uptime=uptime,
            generated_at=now,
        )
        logger.info(
            "Metrics report ready: users=%s conversations=%s messages=%s",
            user_activity["total_users"],
            conversation_analytics["conversations"]["count"],
            conversation_analytics["messages"]["total"],
        )
        return report

    async def _uptime(self) -> float:
        try:
            return await asyncio.wait_for(self.uptime_provider.get_uptime(), timeout=self.uptime_timeout)
        except asyncio.TimeoutError:
            logger.error("Uptime provider timed out after %ss, using fallback uptime", self.uptime_timeout)
        except Exception as exc:
            logger.error("Uptime provider failed, using fallback uptime: %s", exc)
        return self.uptime_fallback

    def generate_report_sync(
        self,
        range_token: Optional[str] = None,
        custom_from: DateLike = None,
        custom_to: DateLike = None,
        now: Optional[datetime] = None,
    ) -> Dict:
        return asyncio.run(self.generate_report(range_token, custom_from, custom_to, now=now))

    def get_query_log(self, filters: Optional[QueryLogFilters] = None) -> Dict:
        filters = filters or QueryLogFilters()
        users_by_id = {user.id: user for user in self.repo.fetch_users()}
        conversations = self.repo.fetch_conversations(_EPOCH, self.clock())
        result = build_query_log(
            conversations,
            users_by_id,
            filters,
            confidence_threshold=self.confidence_threshold,
        )
        logger.info(
            "Query log page %s: %s of %s entries",
            filters.page,
            len(result["queries"]),
            result["pagination"]["total"],
        )
        return result


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _zoned_clock(zone: tzinfo) -> Callable[[], datetime]:
    def clock() -> datetime:
        return datetime.now(zone)

    return clock
