from __future__ import annotations
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import Principal, require_admin
from ...db import get_db
from ...repos import sessions as sess_repo
from ...repos import signups as signup_repo
from ...services.errors import RegistrationError
from ...services.roster import SignupPatch, delete_signup, update_signup
from ...domain.schemas.registration import SignupOut, SignupPatchIn
from ..errors import to_http

router = APIRouter(prefix="/admin/sessions/{session_id}/signups", tags=["admin"])


@router.get("", response_model=list[SignupOut])
async def list_signups(
    session_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    if not await sess_repo.get_session(db, session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    rows = await signup_repo.list_roster(db, session_id)
    return [SignupOut.from_model(r.signup, r.waitlist_position) for r in rows]


@router.patch("/{signup_id}", response_model=SignupOut)
async def patch_signup(
    session_id: uuid.UUID,
    signup_id: int,
    payload: SignupPatchIn,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    ctx = request.app.state.ctx
    try:
        s = await update_signup(
            db,
            session_id=session_id,
            signup_id=signup_id,
            patch=SignupPatch(
                full_name=payload.full_name,
                email=payload.email,
                class_year=payload.class_year,
                status=payload.status,
            ),
            notifier=ctx.notifier,
            attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)

    position = None
    if s.status == "waitlist":
        position = await signup_repo.waitlist_position(db, session_id, s.id)
    return SignupOut.from_model(s, position)


@router.delete("/{signup_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_signup(
    session_id: uuid.UUID,
    signup_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current: Principal = Depends(require_admin),
):
    ctx = request.app.state.ctx
    try:
        # idempotent: an absent signup is still a 204
        await delete_signup(
            db,
            session_id=session_id,
            signup_id=signup_id,
            notifier=ctx.notifier,
            attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
