from __future__ import annotations
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import case, select

from ..models import Session, Signup


def registrant_key(email: str) -> str:
    return email.strip().lower()


@dataclass
class RosterRow:
    signup: Signup
    waitlist_position: Optional[int]


async def get_by_id(db: AsyncSession, session_id: uuid.UUID, signup_id: int) -> Optional[Signup]:
    res = await db.execute(
        select(Signup)
        .where(Signup.session_id == session_id, Signup.id == signup_id)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def get_by_key(db: AsyncSession, session_id: uuid.UUID, key: str) -> Optional[Signup]:
    res = await db.execute(
        select(Signup)
        .where(Signup.session_id == session_id, Signup.registrant_key == key)
        .execution_options(populate_existing=True)
    )
    return res.scalar_one_or_none()


async def list_roster(db: AsyncSession, session_id: uuid.UUID) -> list[RosterRow]:
    """Confirmed first, then waitlist; both in id order. Waitlist rows get 1-based positions."""
    rows = await db.execute(
        select(Signup)
        .where(Signup.session_id == session_id)
        .order_by(
            case((Signup.status == "confirmed", 0), else_=1),
            Signup.id.asc(),
        )
    )
    out: list[RosterRow] = []
    pos = 0
    for s in rows.scalars().all():
        if s.status == "waitlist":
            pos += 1
            out.append(RosterRow(signup=s, waitlist_position=pos))
        else:
            out.append(RosterRow(signup=s, waitlist_position=None))
    return out


async def waitlist_position(db: AsyncSession, session_id: uuid.UUID, signup_id: int) -> Optional[int]:
    rows = await db.execute(
        select(Signup.id)
        .where(Signup.session_id == session_id, Signup.status == "waitlist")
        .order_by(Signup.id.asc())
    )
    for idx, sid in enumerate(rows.scalars().all(), start=1):
        if sid == signup_id:
            return idx
    return None


async def list_for_user(db: AsyncSession, user_id: str) -> Sequence[Tuple[Signup, Session]]:
    rows = await db.execute(
        select(Signup, Session)
        .join(Session, Session.id == Signup.session_id)
        .where(Signup.user_id == user_id)
        .order_by(Session.start_at.desc())
    )
    return list(rows.all())


async def count_for_session(db: AsyncSession, session_id: uuid.UUID) -> Tuple[int, int]:
    """(confirmed, waitlist) by counting rows; used to audit the running totals."""
    rows = await db.execute(
        select(Signup.status).where(Signup.session_id == session_id)
    )
    statuses = list(rows.scalars().all())
    return statuses.count("confirmed"), statuses.count("waitlist")
