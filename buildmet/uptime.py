"""Uptime telemetry providers. Failures degrade to a fixed fallback value."""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_UPTIME = 99.9
UPTIMEROBOT_URL = "https://api.uptimerobot.com/v2/getMonitors"


class StaticUptimeProvider:
    """Reports a constant uptime. Used when no monitoring account is configured."""

    def __init__(self, uptime: float = DEFAULT_UPTIME):
        self.uptime = uptime

    async def get_uptime(self) -> float:
        return self.uptime


class UptimeRobotProvider:
    """
    Reads the custom uptime ratio of the first monitor on an UptimeRobot account.

    ``get_uptime`` never raises. Missing credentials, transport errors,
    non-success responses, malformed payloads and empty monitor lists all
    return ``fallback``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str = UPTIMEROBOT_URL,
        timeout: float = 5.0,
        ratio_days: int = 30,
        fallback: float = DEFAULT_UPTIME,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.ratio_days = ratio_days
        self.fallback = fallback
        self._transport = transport

    async def get_uptime(self) -> float:
        if not self.api_key:
            logger.warning("UptimeRobot API key not configured, using fallback uptime %s", self.fallback)
            return self.fallback

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.url,
                    headers={"Cache-Control": "no-cache"},
                    json={
                        "api_key": self.api_key,
                        "format": "json",
                        "custom_uptime_ratios": str(self.ratio_days),
                        "logs": 0,
                    },
                )
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Error fetching UptimeRobot data: %s", exc)
            return self.fallback

        return self._parse_uptime(payload)

    def _parse_uptime(self, payload) -> float:
        if not isinstance(payload, dict) or payload.get("stat") != "ok":
            error = payload.get("error") if isinstance(payload, dict) else payload
            logger.warning("UptimeRobot API returned an error: %s", error)
            return self.fallback

        monitors = payload.get("monitors") or []
        if not monitors:
            logger.warning("No monitors found in UptimeRobot account, using fallback uptime")
            return self.fallback

        monitor = monitors[0]
        raw_ratio = monitor.get("custom_uptime_ratio") if isinstance(monitor, dict) else None
        try:
            # Multiple ratio periods come back dash-separated; the first is the one requested.
            uptime = float(str(raw_ratio).split("-")[0])
        except (TypeError, ValueError):
            logger.warning("Unparsable uptime ratio %r, using fallback uptime", raw_ratio)
            return self.fallback

        logger.debug("UptimeRobot monitor %s reports %.3f%%", monitor.get("friendly_name"), uptime)
        return min(max(uptime, 0.0), 100.0)
