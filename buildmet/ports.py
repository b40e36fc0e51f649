"""Port definitions for the collaborators the report engine reads from."""

from datetime import datetime
from typing import Protocol, Sequence

from .models import Conversation, User


class MetricsRepository(Protocol):
    """Read-only repository interface that adapters can implement for any backend."""

    def fetch_users(self) -> Sequence[User]:
        """Return every user record, including soft-deleted ones."""

    def fetch_conversations(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[Conversation]:
        """Return non-archived conversations updated within ``[start_date, end_date]``."""


class UptimeProvider(Protocol):
    """Source of a single uptime percentage in ``[0, 100]``."""

    async def get_uptime(self) -> float:
        """Return the uptime percentage, or a fallback value on failure."""
