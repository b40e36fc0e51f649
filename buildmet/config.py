"""Runtime settings loaded from the environment."""

import logging
from datetime import timezone, tzinfo
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .uptime import DEFAULT_UPTIME, UPTIMEROBOT_URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BUILDMET_", env_file=".env", extra="ignore")

    database_url: str = Field(default="sqlite:///./buildmet.db")
    timezone: str = Field(default="UTC")

    # Uptime monitoring
    uptimerobot_api_key: Optional[str] = Field(default=None)
    uptimerobot_url: str = Field(default=UPTIMEROBOT_URL)
    uptime_timeout_seconds: float = Field(default=5.0, gt=0)
    uptime_ratio_days: int = Field(default=30, ge=1)
    uptime_fallback: float = Field(default=DEFAULT_UPTIME, ge=0, le=100)

    query_log_confidence_threshold: float = Field(default=0.7, ge=0, le=1)

    log_level: str = Field(default="INFO")

    @property
    def tzinfo(self) -> tzinfo:
        if self.timezone.upper() == "UTC":
            return timezone.utc
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            return timezone.utc


@lru_cache
def get_settings() -> Settings:
    return Settings()


def configure_logging(settings: Settings) -> None:
    """Install a basic root handler. Meant for applications, not library code."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
