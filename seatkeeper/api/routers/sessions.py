from __future__ import annotations
import uuid
from typing import Optional, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...db import get_db
from ...auth.deps import Principal, require_admin
from ...repos import sessions as sess_repo
from ...services import session_admin
from ...services.errors import RegistrationError
from ...domain.schemas.session import SessionCreateIn, SessionOut, SessionPatchIn
from ..errors import to_http

router = APIRouter(tags=["sessions"])


# ---------- Public ----------
@router.get("/sessions", response_model=list[SessionOut])
async def list_sessions(
    db: AsyncSession = Depends(get_db),
    status_filter: Optional[Literal["open", "closed"]] = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=200),
):
    rows = await sess_repo.list_sessions(db, status=status_filter, limit=limit)
    return [SessionOut.from_model(s) for s in rows]


@router.get("/sessions/{session_id}", response_model=SessionOut)
async def get_session(session_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    s = await sess_repo.get_session(db, session_id)
    if not s:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    return SessionOut.from_model(s)


# ---------- Admin ----------
@router.post("/admin/sessions", response_model=SessionOut, status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: SessionCreateIn,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    ctx = request.app.state.ctx
    try:
        s = await session_admin.add_session(
            db,
            session_admin.SessionDraft(
                topic=payload.topic,
                instructor=payload.instructor,
                location=payload.location,
                start_at=payload.start_at,
                end_at=payload.end_at,
                capacity=payload.capacity,
            ),
            default_minutes=ctx.settings.DEFAULT_SESSION_MINUTES,
            notifier=ctx.notifier,
            attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)
    return SessionOut.from_model(s)


@router.patch("/admin/sessions/{session_id}", response_model=SessionOut)
async def patch_session(
    session_id: uuid.UUID,
    payload: SessionPatchIn,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    ctx = request.app.state.ctx
    patch = session_admin.SessionPatch(
        topic=payload.topic,
        instructor=payload.instructor,
        location=payload.location,
        start_at=payload.start_at,
        end_at=payload.end_at,
        capacity=payload.capacity,
        status=payload.status,
        fields_set=frozenset(payload.model_fields_set),
    )
    try:
        s = await session_admin.update_session(
            db, session_id, patch, notifier=ctx.notifier, attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)
    return SessionOut.from_model(s)


@router.delete("/admin/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session(
    session_id: uuid.UUID,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    ctx = request.app.state.ctx
    try:
        await session_admin.delete_session(
            db, session_id, notifier=ctx.notifier, attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
