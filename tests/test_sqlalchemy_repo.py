import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy import Boolean, DateTime, Integer, String, Text, column, create_engine, table, text
from sqlalchemy.orm import Session

from buildmet.adapters import SQLAlchemyMetricsRepository
from buildmet.models import BuildingType, QueryType, Region, Role, Theme, Vote

SCHEMA = Path(__file__).resolve().parent.parent / "schema.sql"

users = table(
    "users",
    column("id", String),
    column("email", String),
    column("name", String),
    column("created_at", DateTime),
    column("last_login", DateTime),
    column("theme", String),
    column("is_deleted", Boolean),
    column("primary_jurisdiction", String),
)
conversations = table(
    "conversations",
    column("id", String),
    column("user_id", String),
    column("region", String),
    column("created_at", DateTime),
    column("updated_at", DateTime),
    column("is_archived", Boolean),
)
messages = table(
    "conversation_messages",
    column("conversation_id", String),
    column("position", Integer),
    column("role", String),
    column("content", Text),
    column("timestamp", DateTime),
    column("is_edited", Boolean),
    column("regulation", Text),
    column("user_vote", String),
)


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    with engine.begin() as connection:
        for statement in SCHEMA.read_text().split(";"):
            if statement.strip():
                connection.execute(text(statement))

    with Session(engine) as db:
        db.execute(
            users.insert(),
            [
                {
                    "id": "u1",
                    "email": "ana@example.com",
                    "name": "Ana",
                    "created_at": datetime(2026, 1, 5, 8, 0),
                    "last_login": datetime(2026, 3, 14, 9, 30),
                    "theme": "dark",
                    "is_deleted": False,
                    "primary_jurisdiction": "India",
                },
                {
                    "id": "u2",
                    "email": None,
                    "name": None,
                    "created_at": datetime(2025, 11, 1),
                    "last_login": None,
                    "theme": None,
                    "is_deleted": True,
                    "primary_jurisdiction": None,
                },
            ],
        )
        db.execute(
            conversations.insert(),
            [
                {
                    "id": "c1",
                    "user_id": "u1",
                    "region": "Scotland",
                    "created_at": datetime(2026, 3, 10, 9),
                    "updated_at": datetime(2026, 3, 10, 9, 5),
                    "is_archived": False,
                },
                {
                    "id": "archived",
                    "user_id": "u1",
                    "region": "India",
                    "created_at": datetime(2026, 3, 10, 9),
                    "updated_at": datetime(2026, 3, 10, 9, 5),
                    "is_archived": True,
                },
                {
                    "id": "old",
                    "user_id": "u1",
                    "region": "Dubai",
                    "created_at": datetime(2026, 1, 10, 9),
                    "updated_at": datetime(2026, 1, 10, 9, 5),
                    "is_archived": False,
                },
            ],
        )
        db.execute(
            messages.insert(),
            [
                {
                    "conversation_id": "c1",
                    "position": 1,
                    "role": "assistant",
                    "content": "Minimum width is 1.2 m.",
                    "timestamp": datetime(2026, 3, 10, 9, 1),
                    "is_edited": False,
                    "regulation": json.dumps(
                        {
                            "answer": "Minimum width is 1.2 m.",
                            "confidence": 0.82,
                            "processingTime": 2.4,
                            "query_type": "building_codes",
                            "queryMetadata": {"buildingType": "Mixed Use", "codeType": "NBC"},
                        }
                    ),
                    "user_vote": "helpful",
                },
                {
                    "conversation_id": "c1",
                    "position": 0,
                    "role": "user",
                    "content": "How wide must a stair be?",
                    "timestamp": datetime(2026, 3, 10, 9, 0),
                    "is_edited": True,
                    "regulation": None,
                    "user_vote": None,
                },
                {
                    "conversation_id": "c1",
                    "position": 2,
                    "role": "assistant",
                    "content": "Sorry.",
                    "timestamp": datetime(2026, 3, 10, 9, 2),
                    "is_edited": False,
                    "regulation": "{not json",
                    "user_vote": None,
                },
            ],
        )
        db.commit()
        yield db


def test_fetch_users_maps_rows(session):
    repo = SQLAlchemyMetricsRepository(session)

    result = {user.id: user for user in repo.fetch_users()}

    assert set(result) == {"u1", "u2"}
    ana = result["u1"]
    assert ana.created_at == datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)
    assert ana.last_login == datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)
    assert ana.theme is Theme.DARK
    assert ana.is_deleted is False
    assert ana.primary_jurisdiction == "India"
    assert result["u2"].last_login is None
    assert result["u2"].theme is Theme.UNSET
    assert result["u2"].is_deleted is True


def test_fetch_conversations_filters_and_orders_messages(session):
    repo = SQLAlchemyMetricsRepository(session)

    result = repo.fetch_conversations(
        datetime(2026, 3, 1, tzinfo=timezone.utc),
        datetime(2026, 3, 15, tzinfo=timezone.utc),
    )

    assert [conversation.id for conversation in result] == ["c1"]
    conversation = result[0]
    assert conversation.region is Region.SCOTLAND
    assert conversation.updated_at == datetime(2026, 3, 10, 9, 5, tzinfo=timezone.utc)
    assert [message.role for message in conversation.messages] == [Role.USER, Role.ASSISTANT, Role.ASSISTANT]

    question, answer, broken = conversation.messages
    assert question.is_edited is True
    assert question.regulation is None
    assert answer.regulation.confidence == 0.82
    assert answer.regulation.processing_time == 2.4
    assert answer.regulation.query_type is QueryType.BUILDING_CODES
    assert answer.regulation.building_type is BuildingType.MIXED_USE
    assert answer.regulation.code_type == "NBC"
    assert answer.user_vote is Vote.HELPFUL
    assert broken.regulation is None


def test_fetch_conversations_accepts_other_timezones(session):
    repo = SQLAlchemyMetricsRepository(session)

    dubai = timezone(timedelta(hours=4))
    result = repo.fetch_conversations(
        datetime(2026, 3, 10, 13, 0, tzinfo=dubai),
        datetime(2026, 3, 10, 13, 5, tzinfo=dubai),
    )

    assert [conversation.id for conversation in result] == ["c1"]


def test_fetch_conversations_empty_window(session):
    repo = SQLAlchemyMetricsRepository(session)

    assert repo.fetch_conversations(
        datetime(2025, 1, 1, tzinfo=timezone.utc),
        datetime(2025, 1, 2, tzinfo=timezone.utc),
    ) == []
