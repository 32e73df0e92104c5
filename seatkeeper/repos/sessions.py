from __future__ import annotations
import uuid
from typing import Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ..models import Session


async def get_session(db: AsyncSession, session_id: uuid.UUID, *, for_update: bool = False) -> Optional[Session]:
    q = select(Session).where(Session.id == session_id)
    if for_update:
        # a row cached from an earlier transaction must not shadow the locked read
        q = q.with_for_update().execution_options(populate_existing=True)
    res = await db.execute(q)
    return res.scalar_one_or_none()


async def list_sessions(
    db: AsyncSession,
    *,
    status: Optional[str] = None,
    limit: int = 100,
) -> Sequence[Session]:
    q = select(Session).order_by(Session.start_at.asc(), Session.id.asc()).limit(limit)
    if status is not None:
        q = q.where(Session.status == status)
    res = await db.execute(q)
    return list(res.scalars().all())
