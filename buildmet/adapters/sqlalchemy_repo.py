"""SQLAlchemy repository adapter for buildmet."""

import json
import logging
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.orm import Session

from ..models import (
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

logger = logging.getLogger(__name__)


class SQLAlchemyMetricsRepository:
    """Fetches user and conversation rows from relational tables and maps them to domain models."""

    def __init__(self, db: Session):
        self.db = db

    def fetch_users(self) -> Sequence[User]:
        rows = self.db.execute(
            text(
                """
                SELECT id, email, name, created_at, last_login, theme,
                       is_deleted, primary_jurisdiction
                FROM users
                """
            )
        ).fetchall()

        return [
            User(
                id=str(row.id),
                created_at=_parse_datetime(row.created_at),
                last_login=_parse_datetime(row.last_login),
                theme=Theme.parse(row.theme),
                is_deleted=bool(row.is_deleted),
                primary_jurisdiction=row.primary_jurisdiction,
                email=row.email,
                name=row.name,
            )
            for row in rows
        ]

    def fetch_conversations(
        self,
        start_date: datetime,
        end_date: datetime,
    ) -> Sequence[Conversation]:
        rows = self.db.execute(
            text(
                """
                SELECT id, user_id, region, created_at, updated_at
                FROM conversations
                WHERE (is_archived IS NULL OR is_archived = :archived)
                  AND updated_at >= :start_date AND updated_at <= :end_date
                ORDER BY updated_at DESC
                """
            ).bindparams(
                bindparam("start_date", type_=DateTime()),
                bindparam("end_date", type_=DateTime()),
            ),
            {
                "archived": False,
                "start_date": _to_naive_utc(start_date),
                "end_date": _to_naive_utc(end_date),
            },
        ).fetchall()
        if not rows:
            return []

        messages = self._fetch_messages([str(row.id) for row in rows])
        return [
            Conversation(
                id=str(row.id),
                user_id=str(row.user_id),
                region=Region.parse(row.region),
                created_at=_parse_datetime(row.created_at),
                updated_at=_parse_datetime(row.updated_at),
                messages=tuple(messages.get(str(row.id), ())),
            )
            for row in rows
        ]

    def _fetch_messages(self, conversation_ids: List[str]) -> Dict[str, List[Message]]:
        params = {f"id_{index}": conversation_id for index, conversation_id in enumerate(conversation_ids)}
        placeholders = ", ".join(f":{name}" for name in params)
        rows = self.db.execute(
            text(
                f"""
                SELECT conversation_id, position, role, content, timestamp,
                       is_edited, regulation, user_vote
                FROM conversation_messages
                WHERE conversation_id IN ({placeholders})
                ORDER BY conversation_id, position
                """
            ),
            params,
        ).fetchall()

        result: Dict[str, List[Message]] = defaultdict(list)
        for row in rows:
            role = Role.ASSISTANT if row.role == Role.ASSISTANT.value else Role.USER
            result[str(row.conversation_id)].append(
                Message(
                    role=role,
                    content=row.content or "",
                    timestamp=_parse_datetime(row.timestamp),
                    is_edited=bool(row.is_edited),
                    regulation=_parse_regulation(row.regulation) if role is Role.ASSISTANT else None,
                    user_vote=Vote.parse(row.user_vote),
                )
            )
        return result


def _parse_regulation(raw_regulation) -> Optional[Regulation]:
    if raw_regulation is None:
        return None
    if isinstance(raw_regulation, str):
        try:
            raw_regulation = json.loads(raw_regulation)
        except json.JSONDecodeError:
            logger.warning("Skipping malformed regulation payload")
            return None
    if not isinstance(raw_regulation, dict):
        return None

    metadata = raw_regulation.get("queryMetadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    return Regulation(
        answer=raw_regulation.get("answer"),
        confidence=_parse_float(raw_regulation.get("confidence")),
        processing_time=_parse_float(raw_regulation.get("processingTime")),
        query_type=QueryType.parse(raw_regulation.get("query_type")),
        building_type=BuildingType.parse(metadata.get("buildingType")),
        code_type=metadata.get("codeType"),
    )


def _parse_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_datetime(value) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
