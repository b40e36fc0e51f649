"""Admin dashboard demo: FastAPI backend over synthetic users and conversations."""

from datetime import date, datetime, timedelta, timezone
from random import Random
from typing import Optional, Sequence

from fastapi import FastAPI, HTTPException, Query

from buildmet.config import configure_logging, get_settings
from buildmet.models import (
    BuildingType,
    Conversation,
    Message,
    QueryType,
    Region,
    Regulation,
    Role,
    Theme,
    User,
    Vote,
)
from buildmet.querylog import QueryLogFilters
from buildmet.service import AnalyticsService
from buildmet.timewindow import InvalidRangeError

RNG = Random(42)
SETTINGS = get_settings()
configure_logging(SETTINGS)

app = FastAPI(title="buildmet Admin Dashboard Demo", version="0.1.0")


class InMemoryRepository:
    """Serves a fixed synthetic snapshot with the same filtering as the SQL adapter."""

    def __init__(self, users: Sequence[User], conversations: Sequence[Conversation]):
        self.users = list(users)
        self.conversations = list(conversations)

    def fetch_users(self):
        return list(self.users)

    def fetch_conversations(self, start_date, end_date):
        return [
            conversation
            for conversation in self.conversations
            if not conversation.is_archived and start_date <= conversation.updated_at <= end_date
        ]


def _build_demo_data() -> InMemoryRepository:
    now = datetime.now(timezone.utc)
    regions = [Region.INDIA, Region.SCOTLAND, Region.DUBAI]
    query_types = [QueryType.BUILDING_CODES] * 7 + [
        QueryType.NOT_AVAILABLE,
        QueryType.OUT_OF_SCOPE,
        QueryType.IDENTITY,
    ]
    building_types = list(BuildingType)

    users = []
    for idx in range(120):
        created_at = now - timedelta(days=RNG.uniform(0, 400))
        last_login = None if idx % 9 == 0 else min(now, created_at + timedelta(days=RNG.uniform(0, 60)))
        users.append(
            User(
                id=f"user-{idx}",
                created_at=created_at,
                last_login=last_login,
                theme=[Theme.DARK, Theme.LIGHT, Theme.UNSET][idx % 3],
                is_deleted=idx % 25 == 0,
                primary_jurisdiction=regions[idx % 3].value if idx % 4 else None,
                email=f"user{idx}@example.com",
                name=f"Demo User {idx}",
            )
        )

    conversations = []
    for idx in range(300):
        created_at = now - timedelta(hours=idx * 7 + RNG.randint(0, 6))
        messages = []
        for turn in range(RNG.randint(1, 3)):
            asked_at = created_at + timedelta(minutes=turn * 5)
            messages.append(
                Message(role=Role.USER, content=f"Question {idx}.{turn} about fire exits", timestamp=asked_at)
            )
            messages.append(
                Message(
                    role=Role.ASSISTANT,
                    content="See the relevant clause.",
                    timestamp=asked_at + timedelta(seconds=4),
                    is_edited=idx % 17 == 0,
                    regulation=Regulation(
                        answer="See the relevant clause.",
                        confidence=round(RNG.uniform(0.4, 0.98), 3),
                        processing_time=round(max(0.5, RNG.gauss(3.0, 1.2)), 2),
                        query_type=RNG.choice(query_types),
                        building_type=RNG.choice(building_types) if idx % 2 else None,
                        code_type="NBC" if idx % 3 == 0 else None,
                    ),
                    user_vote=[Vote.HELPFUL, Vote.UNHELPFUL, None][idx % 3],
                )
            )
        conversations.append(
            Conversation(
                id=f"conv-{idx}",
                user_id=users[idx % len(users)].id,
                region=regions[idx % 3],
                created_at=created_at,
                updated_at=messages[-1].timestamp,
                is_archived=idx % 40 == 0,
                messages=tuple(messages),
            )
        )

    return InMemoryRepository(users, conversations)


SERVICE = AnalyticsService.from_settings(_build_demo_data(), SETTINGS)


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "demo": "buildmet-admin-dashboard"}


@app.get("/api/admin/metrics")
async def metrics(
    time_range: str = Query("month", alias="timeRange"),
    custom_from: Optional[str] = Query(None, alias="customFrom"),
    custom_to: Optional[str] = Query(None, alias="customTo"),
) -> dict:
    try:
        return await SERVICE.generate_report(time_range, custom_from, custom_to)
    except InvalidRangeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.get("/api/admin/queries")
def queries(
    search: str = "",
    region: str = "all",
    feedback: str = "all",
    response_time: str = Query("all", alias="responseTime"),
    date_from: Optional[date] = Query(None, alias="dateFrom"),
    date_to: Optional[date] = Query(None, alias="dateTo"),
    page: int = 1,
    limit: int = 50,
) -> dict:
    try:
        filters = QueryLogFilters(
            search=search,
            region=region,
            feedback=feedback,
            response_time=response_time,
            date_from=date_from,
            date_to=date_to,
            page=page,
            limit=limit,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return SERVICE.get_query_log(filters)
