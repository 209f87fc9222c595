from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from config.settings import (
    DEFAULT_TEAM_SIZE_MAX,
    DEFAULT_TEAM_SIZE_MIN,
    MAX_PARTICIPANTS_CEILING,
)
from utils.validation import clean_strings, is_valid_email, is_valid_phone, is_valid_url


Role = Literal["student", "organizer", "admin"]
ROLES = ("student", "organizer", "admin")
HackathonStatus = Literal["upcoming", "ongoing", "completed", "cancelled"]
MemberRole = Literal["leader", "member"]

FeedbackStatus = Literal["new", "in_progress", "resolved", "closed"]
FeedbackPriority = Literal["low", "medium", "high", "urgent"]
FeedbackCategory = Literal["bug", "feature_request", "general", "complaint", "suggestion", "other"]


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """JSON uses camelCase keys, Python code uses snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# --- Hackathon documents ---

class TeamSize(CamelModel):
    min: int = Field(default=DEFAULT_TEAM_SIZE_MIN, ge=1)
    max: int = Field(default=DEFAULT_TEAM_SIZE_MAX, ge=1)

    @field_validator("max")
    @classmethod
    def _max_not_below_min(cls, value: int, info: ValidationInfo) -> int:
        low = info.data.get("min")
        if low is not None and value < low:
            raise ValueError("Maximum team size must be at least the minimum")
        return value


class Prize(CamelModel):
    position: str = Field(min_length=1)
    amount: str = Field(min_length=1)
    description: Optional[str] = None


class Member(CamelModel):
    user: Optional[str] = None
    name: str
    email: str
    phone: str
    college: str
    year: str
    skills: List[str] = Field(default_factory=list)
    role: MemberRole = "member"


class Team(CamelModel):
    team_name: str
    members: List[Member]
    registered_at: datetime

    @property
    def size(self) -> int:
        return len(self.members)


class Hackathon(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    id: str
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    organizer: str
    # Field order matters: the schedule validators read earlier fields from info.data
    start_date: datetime
    end_date: datetime
    registration_deadline: datetime
    location: str = Field(min_length=1)
    max_participants: int = Field(ge=1, le=MAX_PARTICIPANTS_CEILING)
    team_size: TeamSize = Field(default_factory=TeamSize)
    participants: List[str] = Field(default_factory=list)
    teams: List[Team] = Field(default_factory=list)
    status: HackathonStatus = "upcoming"
    is_approved: bool = False
    tags: List[str] = Field(default_factory=list)
    prizes: List[Prize] = Field(default_factory=list)
    requirements: Optional[str] = Field(default=None, max_length=1000)
    rules: Optional[str] = Field(default=None, max_length=2000)
    contact_email: str
    website: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Tracked in its own column, never part of the stored document
    version: int = Field(default=0, exclude=True)

    @field_validator("start_date", "created_at", "updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    @field_validator("end_date")
    @classmethod
    def _end_after_start(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = as_utc(value)
        start = info.data.get("start_date")
        if start is not None and value <= start:
            raise ValueError("End date must be after start date")
        return value

    @field_validator("registration_deadline")
    @classmethod
    def _deadline_before_start(cls, value: datetime, info: ValidationInfo) -> datetime:
        value = as_utc(value)
        start = info.data.get("start_date")
        if start is not None and value > start:
            raise ValueError("Registration deadline must be before or on start date")
        return value

    @field_validator("contact_email")
    @classmethod
    def _contact_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Please enter a valid email")
        return value.lower()

    @field_validator("website", "image_url")
    @classmethod
    def _url(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_url(value):
            raise ValueError("Must be a valid http(s) URL")
        return value or None

    @field_validator("tags")
    @classmethod
    def _tags(cls, value: List[str]) -> List[str]:
        return clean_strings(value, lower=True)


# --- Request bodies ---

class MemberIn(CamelModel):
    """Any JSON value is accepted; the registration workflow reads fields as text and
    reports problems as ``member[i].<field>`` after the hackathon checks."""

    user: Any = None
    name: Any = None
    email: Any = None
    phone: Any = None
    college: Any = None
    year: Any = None
    skills: Any = None
    role: Any = None


class TeamRegistrationIn(CamelModel):
    team_name: Any = ""
    members: List[Any] = Field(default_factory=list)


class HackathonIn(CamelModel):
    """Create/edit payload; the merged record is validated as a Hackathon."""

    title: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    registration_deadline: Optional[datetime] = None
    location: Optional[str] = None
    max_participants: Optional[int] = None
    team_size: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    prizes: Optional[List[Dict[str, Any]]] = None
    requirements: Optional[str] = None
    rules: Optional[str] = None
    contact_email: Optional[str] = None
    website: Optional[str] = None
    image_url: Optional[str] = None

    def provided(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_unset=True)


# --- Accounts ---

class User(CamelModel):
    id: str
    email: str
    name: str
    mobile: Optional[str] = None
    role: Role = "student"
    is_active: bool = True
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(
            id=row["id"],
            email=row["email"],
            name=row["name"],
            mobile=row["mobile"],
            role=row["role"],
            is_active=bool(row["is_active"]),
            created_at=row["created_at"],
        )


class UserCreate(CamelModel):
    email: str
    name: str = Field(min_length=1, max_length=100)
    role: Role = "student"
    mobile: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Please enter a valid email")
        return value.strip().lower()

    @field_validator("mobile")
    @classmethod
    def _mobile(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_phone(value):
            raise ValueError("Please enter a valid Indian mobile number")
        return value or None


class RoleUpdate(CamelModel):
    role: Role


class ProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    mobile: Optional[str] = None

    @field_validator("mobile")
    @classmethod
    def _mobile(cls, value: Optional[str]) -> Optional[str]:
        if value and not is_valid_phone(value):
            raise ValueError("Please enter a valid Indian mobile number")
        return value


# --- Feedback ---

class Feedback(CamelModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    status: FeedbackStatus = "new"
    priority: FeedbackPriority = "medium"
    category: FeedbackCategory = "general"
    rating: int = 5
    user_id: Optional[str] = None
    admin_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Feedback":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            subject=row["subject"],
            message=row["message"],
            status=row["status"],
            priority=row["priority"],
            category=row["category"],
            rating=row["rating"],
            user_id=row["user_id"],
            admin_notes=row["admin_notes"],
            resolved_by=row["resolved_by"],
            resolved_at=row["resolved_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


class FeedbackIn(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    name: str = Field(min_length=1, max_length=100)
    email: str
    subject: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=2000)
    category: FeedbackCategory = "general"
    rating: int = Field(default=5, ge=1, le=5)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("Please enter a valid email")
        return value.lower()


class FeedbackUpdate(CamelModel):
    status: Optional[FeedbackStatus] = None
    priority: Optional[FeedbackPriority] = None
    admin_notes: Optional[str] = Field(default=None, max_length=1000)
