import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator, StringConstraints
from typing import Optional, Literal, Annotated


def as_utc(dt: datetime) -> datetime:
    # SQLite hands timestamps back naive; they were written as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]


def _require_tz(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return v
    if v.tzinfo is None or v.tzinfo.utcoffset(v) is None:
        raise ValueError("timestamps must be timezone-aware (e.g., '2025-08-15T02:00:00Z')")
    return v


class SessionCreateIn(BaseModel):
    topic: Text
    instructor: Text
    location: Text
    start_at: datetime
    end_at: Optional[datetime] = Field(default=None, description="defaults to start_at + 60 minutes")
    capacity: Optional[int] = Field(default=None, description="positive seat count; -1 or null for unlimited")

    @field_validator("start_at", "end_at")
    @classmethod
    def tz_aware(cls, v):
        return _require_tz(v)


class SessionPatchIn(BaseModel):
    topic: Optional[Text] = None
    instructor: Optional[Text] = None
    location: Optional[Text] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    capacity: Optional[int] = Field(default=None, description="-1 or explicit null for unlimited; omit to keep")
    status: Optional[Literal["open", "closed"]] = None

    @field_validator("start_at", "end_at")
    @classmethod
    def tz_aware(cls, v):
        return _require_tz(v)


class SessionOut(BaseModel):
    id: uuid.UUID
    topic: str
    instructor: str
    location: str
    start_at: datetime
    end_at: datetime
    capacity: Optional[int]  # null = unlimited
    confirmed_count: int
    waitlist_count: int
    seats_left: Optional[int]
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, s) -> "SessionOut":
        return cls(
            id=s.id,
            topic=s.topic,
            instructor=s.instructor,
            location=s.location,
            start_at=as_utc(s.start_at),
            end_at=as_utc(s.end_at),
            capacity=s.capacity,
            confirmed_count=s.confirmed_count,
            waitlist_count=s.waitlist_count,
            seats_left=s.seats_left,
            status=s.status,
            created_at=as_utc(s.created_at),
            updated_at=as_utc(s.updated_at),
        )


class AdminLoginIn(BaseModel):
    code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
