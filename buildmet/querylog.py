"""Admin query log: one row per answered user question, filtered and paginated."""

from dataclasses import asdict, dataclass
from datetime import date, datetime, time
from math import ceil
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import REPORTED_REGIONS, Conversation, Message, Region, Role, User

DEFAULT_CONFIDENCE_THRESHOLD = 0.7
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200

FAST_RESPONSE_SECONDS = 2
SLOW_RESPONSE_SECONDS = 5

FEEDBACK_FILTERS = ("all", "helpful", "unhelpful")
RESPONSE_TIME_FILTERS = ("all", "fast", "medium", "slow")
REGION_FILTERS = ("all",) + tuple(region.value for region in REPORTED_REGIONS)


@dataclass(frozen=True)
class QueryLogFilters:
    """
    Filters for the query log.

    ``date_from`` and ``date_to`` bound the conversation's last update;
    ``date_to`` is inclusive through the end of that day.
    """

    search: str = ""
    region: str = "all"
    feedback: str = "all"
    response_time: str = "all"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page < 1:
            raise ValueError(f"page must be >= 1, got {self.page}")
        if not 1 <= self.limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}, got {self.limit}")
        if self.region not in REGION_FILTERS:
            raise ValueError(f"unknown region filter: {self.region!r}")
        if self.feedback not in FEEDBACK_FILTERS:
            raise ValueError(f"unknown feedback filter: {self.feedback!r}")
        if self.response_time not in RESPONSE_TIME_FILTERS:
            raise ValueError(f"unknown response time filter: {self.response_time!r}")

    def matches_conversation(self, conversation: Conversation) -> bool:
        if conversation.is_archived:
            return False
        if self.region != "all" and conversation.region is not Region(self.region):
            return False
        updated = conversation.updated_at
        if self.date_from and updated < _at(self.date_from, time.min, updated):
            return False
        if self.date_to and updated > _at(self.date_to, time(23, 59, 59, 999000), updated):
            return False
        return True

    def matches_entry(self, entry: Dict) -> bool:
        if self.search and self.search.lower() not in entry["query"].lower():
            return False
        if self.feedback != "all" and entry["feedback"] != self.feedback:
            return False
        if self.response_time != "all" and _response_time_band(entry["_response_seconds"]) != self.response_time:
            return False
        return True


def build_query_log(
    conversations: Iterable[Conversation],
    users_by_id: Mapping[str, User],
    filters: Optional[QueryLogFilters] = None,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
) -> Dict:
    """Extract answered questions from conversations, newest first, one page at a time."""
    filters = filters or QueryLogFilters()

    entries: List[Dict] = []
    for conversation in conversations:
        if not filters.matches_conversation(conversation):
            continue
        user = users_by_id.get(conversation.user_id)
        for index, question, answer in _answered_questions(conversation.messages):
            entry = _entry(conversation, user, index, question, answer, confidence_threshold)
            if filters.matches_entry(entry):
                entries.append(entry)

    entries.sort(key=lambda entry: entry["_sort_key"], reverse=True)

    total = len(entries)
    start_index = (filters.page - 1) * filters.limit
    end_index = start_index + filters.limit
    page_entries = [_public(entry) for entry in entries[start_index:end_index]]

    return {
        "queries": page_entries,
        "pagination": {
            "total": total,
            "page": filters.page,
            "limit": filters.limit,
            "totalPages": ceil(total / filters.limit),
            "hasMore": end_index < total,
        },
        "filters": {
            key: value.isoformat() if isinstance(value, date) else value
            for key, value in asdict(filters).items()
            if key not in ("page", "limit")
        },
    }


def _answered_questions(messages: Sequence[Message]) -> Iterable[Tuple[int, Message, Message]]:
    for index, message in enumerate(messages):
        if message.role is not Role.USER:
            continue
        answer = next(
            (
                candidate
                for candidate in messages[index + 1:]
                if candidate.role is Role.ASSISTANT and candidate.regulation is not None
            ),
            None,
        )
        if answer is not None:
            yield index, message, answer


def _entry(
    conversation: Conversation,
    user: Optional[User],
    index: int,
    question: Message,
    answer: Message,
    confidence_threshold: float,
) -> Dict:
    regulation = answer.regulation
    confidence = regulation.confidence
    response_time = regulation.processing_time or 0.0
    timestamp = question.timestamp or conversation.updated_at
    return {
        "id": f"{conversation.id}_{index}",
        "conversationId": conversation.id,
        "query": question.content,
        "userEmail": (user.email if user and user.email else "Unknown"),
        "userName": (user.name if user and user.name else "Unknown"),
        "region": conversation.region.value,
        "timestamp": timestamp.isoformat(),
        "responseTime": round(response_time, 2),
        "feedback": "helpful" if confidence is not None and confidence >= confidence_threshold else "unhelpful",
        "userVote": answer.user_vote.value if answer.user_vote else None,
        "confidence": confidence,
        "buildingType": regulation.building_type.value if regulation.building_type else None,
        "codeType": regulation.code_type,
        "_sort_key": timestamp,
        "_response_seconds": response_time,
    }


def _public(entry: Dict) -> Dict:
    return {key: value for key, value in entry.items() if not key.startswith("_")}


def _response_time_band(seconds: float) -> str:
    if seconds < FAST_RESPONSE_SECONDS:
        return "fast"
    if seconds < SLOW_RESPONSE_SECONDS:
        return "medium"
    return "slow"


def _at(day: date, moment: time, reference: datetime) -> datetime:
    return datetime.combine(day, moment, tzinfo=reference.tzinfo)
