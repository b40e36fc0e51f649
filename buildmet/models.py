"""Core domain models used by the analytics engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Sequence


class Region(str, Enum):
    """Building-code jurisdictions a conversation can be scoped to."""

    INDIA = "India"
    SCOTLAND = "Scotland"
    DUBAI = "Dubai"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Region":
        for region in cls:
            if region.value == value:
                return region
        return cls.OTHER


# Regions shown on the dashboard, in display order.
REPORTED_REGIONS = (Region.INDIA, Region.SCOTLAND, Region.DUBAI)


class QueryType(str, Enum):
    """Classification attached to an assistant answer."""

    BUILDING_CODES = "building_codes"
    NOT_AVAILABLE = "not_available"
    OUT_OF_SCOPE = "out_of_scope"
    IDENTITY = "identity"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "QueryType":
        for query_type in cls:
            if query_type.value == value:
                return query_type
        return cls.UNKNOWN


FAILED_QUERY_TYPES = frozenset({QueryType.NOT_AVAILABLE, QueryType.OUT_OF_SCOPE})


class BuildingType(str, Enum):
    """Occupancy classes extracted from a question by the answer service."""

    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    INSTITUTIONAL = "institutional"
    EDUCATIONAL = "educational"
    HEALTHCARE = "healthcare"
    ASSEMBLY = "assembly"
    STORAGE = "storage"
    MIXED_USE = "mixed_use"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["BuildingType"]:
        if not value or not value.strip():
            return None
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        for building_type in cls:
            if building_type.value == key:
                return building_type
        return cls.OTHER


class Theme(str, Enum):
    DARK = "dark"
    LIGHT = "light"
    UNSET = "unset"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Theme":
        if value == cls.DARK.value:
            return cls.DARK
        if value == cls.LIGHT.value:
            return cls.LIGHT
        return cls.UNSET


class Vote(str, Enum):
    HELPFUL = "helpful"
    UNHELPFUL = "unhelpful"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Vote"]:
        if value == cls.HELPFUL.value:
            return cls.HELPFUL
        if value == cls.UNHELPFUL.value:
            return cls.UNHELPFUL
        return None


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class User:
    """Account snapshot. Owned by the account subsystem; read-only here."""

    id: str
    created_at: datetime
    last_login: Optional[datetime] = None
    theme: Theme = Theme.UNSET
    is_deleted: bool = False
    primary_jurisdiction: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None


@dataclass(frozen=True)
class Regulation:
    """
    Answer payload the RAG service attaches to an assistant message.

    ``confidence`` and ``processing_time`` stay ``None`` when the service did
    not report them so absent values are left out of the summed averages.
    """

    answer: Optional[str] = None
    confidence: Optional[float] = None
    processing_time: Optional[float] = None
    query_type: QueryType = QueryType.UNKNOWN
    building_type: Optional[BuildingType] = None
    code_type: Optional[str] = None


@dataclass(frozen=True)
class Message:
    role: Role
    content: str
    timestamp: Optional[datetime] = None
    is_edited: bool = False
    regulation: Optional[Regulation] = None
    user_vote: Optional[Vote] = None

    def __post_init__(self) -> None:
        if self.regulation is not None and self.role is not Role.ASSISTANT:
            raise ValueError("regulation is only allowed on assistant messages")


@dataclass(frozen=True)
class Conversation:
    id: str
    user_id: str
    region: Region
    created_at: datetime
    updated_at: datetime
    is_archived: bool = False
    messages: Sequence[Message] = field(default_factory=tuple)


@dataclass(frozen=True)
class TimeWindow:
    """Resolved reporting window. ``start`` and ``end`` are both inclusive."""

    range_token: str
    start: datetime
    end: datetime

    def contains(self, instant: Optional[datetime]) -> bool:
        return instant is not None and self.start <= instant <= self.end

    @property
    def length_days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400
