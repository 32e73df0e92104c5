import uuid
from datetime import datetime

from pydantic import BaseModel, Field, field_validator, StringConstraints
from typing import Optional, Literal, Annotated

from .session import as_utc


class RegisterIn(BaseModel):
    full_name: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]
    email: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=254)]] = Field(
        default=None, description="defaults to the caller's token email; another address needs admin"
    )
    class_year: Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)] = ""

    @field_validator("email")
    @classmethod
    def looks_like_email(cls, v):
        if v is not None and "@" not in v:
            raise ValueError("invalid email")
        return v


class RegisterOut(BaseModel):
    status: Literal["confirmed", "waitlist"]
    signup_id: int
    waitlist_position: Optional[int] = None


class CancelOut(BaseModel):
    deleted: bool
    prior_status: Optional[str] = None


class SignupOut(BaseModel):
    id: int
    session_id: uuid.UUID
    full_name: str
    email: str
    class_year: str
    status: str  # confirmed | waitlist
    waitlist_position: Optional[int] = None
    created_at: datetime

    @classmethod
    def from_model(cls, s, waitlist_position: Optional[int] = None) -> "SignupOut":
        return cls(
            id=s.id,
            session_id=s.session_id,
            full_name=s.full_name,
            email=s.email,
            class_year=s.class_year,
            status=s.status,
            waitlist_position=waitlist_position,
            created_at=as_utc(s.created_at),
        )


class SignupPatchIn(BaseModel):
    full_name: Optional[Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=120)]] = None
    email: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=254)]] = None
    class_year: Optional[Annotated[str, StringConstraints(strip_whitespace=True, max_length=20)]] = None
    status: Optional[Literal["confirmed", "waitlist"]] = None


class MySignupOut(BaseModel):
    """Signup with session details for the caller's history page"""
    signup_id: int
    session_id: uuid.UUID
    topic: str
    instructor: str
    location: str
    start_at: datetime
    end_at: datetime
    session_status: str  # open | closed
    status: str  # confirmed | waitlist
    waitlist_position: Optional[int] = None
