from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Session as SessionModel, Signup
from ..repos import sessions as sess_repo
from .errors import InvalidInput, NotFound
from .notifications import Notifier
from .tx import run_serializable

log = logging.getLogger(__name__)

UNLIMITED = -1
SESSION_STATUSES = ("open", "closed")


@dataclass(frozen=True)
class SessionDraft:
    topic: str
    instructor: str
    location: str
    start_at: datetime
    end_at: Optional[datetime] = None
    capacity: Optional[int] = None  # None or -1: unlimited


@dataclass(frozen=True)
class SessionPatch:
    topic: Optional[str] = None
    instructor: Optional[str] = None
    location: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    capacity: Optional[int] = None  # None: unchanged, -1: unlimited
    status: Optional[str] = None
    fields_set: frozenset = field(default_factory=frozenset)


def normalize_capacity(value: Optional[int]) -> Optional[int]:
    """-1 and None mean unlimited and are stored as NULL; 0 and anything below -1 are rejected."""
    if value is None or value == UNLIMITED:
        return None
    if value <= 0:
        raise InvalidInput("capacity must be a positive integer, or -1 for unlimited")
    return value


def _utc(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _required_text(name: str, value: Optional[str]) -> str:
    v = (value or "").strip()
    if not v:
        raise InvalidInput(f"{name} is required")
    return v


def _check_window(start_at: datetime, end_at: datetime) -> None:
    if _utc(end_at) <= _utc(start_at):
        raise InvalidInput("end_at must be after start_at")


async def add_session(
    db: AsyncSession,
    draft: SessionDraft,
    *,
    default_minutes: int = 60,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> SessionModel:
    topic = _required_text("topic", draft.topic)
    instructor = _required_text("instructor", draft.instructor)
    location = _required_text("location", draft.location)
    capacity = normalize_capacity(draft.capacity)

    start_at = _utc(draft.start_at)
    end_at = _utc(draft.end_at) if draft.end_at is not None else start_at + timedelta(minutes=default_minutes)
    _check_window(start_at, end_at)

    async def _attempt() -> SessionModel:
        sess = SessionModel(
            id=uuid.uuid4(),
            topic=topic,
            instructor=instructor,
            location=location,
            start_at=start_at,
            end_at=end_at,
            capacity=capacity,
            confirmed_count=0,
            waitlist_count=0,
            status="open",
        )
        db.add(sess)
        await db.flush()
        return sess

    sess = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="add_session"
    )
    log.info("session_created", extra={"session_id": str(sess.id), "capacity": capacity})
    if notifier is not None:
        await notifier.session_changed(sess.id, "session_created")
    return sess


async def update_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    patch: SessionPatch,
    *,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> SessionModel:
    """
    Metadata edit. A capacity change is applied as-is: signups already
    confirmed past a lowered capacity stay confirmed and nobody is promoted
    when it grows.
    """
    if patch.status is not None and patch.status not in SESSION_STATUSES:
        raise InvalidInput("status must be 'open' or 'closed'")
    capacity_given = "capacity" in patch.fields_set or patch.capacity is not None
    new_capacity = normalize_capacity(patch.capacity) if capacity_given else None

    async def _attempt() -> SessionModel:
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if sess is None:
            raise NotFound("session")

        if patch.topic is not None:
            sess.topic = _required_text("topic", patch.topic)
        if patch.instructor is not None:
            sess.instructor = _required_text("instructor", patch.instructor)
        if patch.location is not None:
            sess.location = _required_text("location", patch.location)
        if patch.start_at is not None:
            sess.start_at = _utc(patch.start_at)
        if patch.end_at is not None:
            sess.end_at = _utc(patch.end_at)
        if patch.start_at is not None or patch.end_at is not None:
            _check_window(sess.start_at, sess.end_at)
        if capacity_given:
            sess.capacity = new_capacity
        if patch.status is not None:
            sess.status = patch.status
        sess.updated_at = datetime.now(timezone.utc)

        await db.flush()
        return sess

    sess = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="update_session"
    )
    log.info("session_updated", extra={"session_id": str(session_id), "status": sess.status, "capacity": sess.capacity})
    if notifier is not None:
        await notifier.session_changed(session_id, "session_updated", status=sess.status, capacity=sess.capacity)
    return sess


async def delete_session(
    db: AsyncSession,
    session_id: uuid.UUID,
    *,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> None:
    """Remove a session together with all of its signups."""

    async def _attempt() -> int:
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if sess is None:
            raise NotFound("session")
        # signups go first; SQLite only cascades with PRAGMA foreign_keys on
        res = await db.execute(delete(Signup).where(Signup.session_id == session_id))
        await db.delete(sess)
        await db.flush()
        return res.rowcount or 0

    removed = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="delete_session"
    )
    log.info("session_deleted", extra={"session_id": str(session_id), "signups_removed": removed})
    if notifier is not None:
        await notifier.session_changed(session_id, "session_deleted")
