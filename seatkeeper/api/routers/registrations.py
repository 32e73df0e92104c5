from __future__ import annotations
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...auth.deps import Principal, get_current_principal
from ...db import get_db
from ...repos import signups as signup_repo
from ...services.errors import RegistrationError
from ...services.rate_limit import limit_registration
from ...services.registration import Registrant, ensure_may_register, register
from ...services.roster import cancel_own_signup
from ...domain.schemas.registration import CancelOut, MySignupOut, RegisterIn, RegisterOut
from ...domain.schemas.session import as_utc
from ..errors import to_http

router = APIRouter(tags=["registrations"])


@router.get("/me/signups", response_model=list[MySignupOut])
async def my_signups(
    current: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    rows = await signup_repo.list_for_user(db, current.sub)
    out: list[MySignupOut] = []
    for signup, sess in rows:
        position = None
        if signup.status == "waitlist":
            position = await signup_repo.waitlist_position(db, sess.id, signup.id)
        out.append(
            MySignupOut(
                signup_id=signup.id,
                session_id=sess.id,
                topic=sess.topic,
                instructor=sess.instructor,
                location=sess.location,
                start_at=as_utc(sess.start_at),
                end_at=as_utc(sess.end_at),
                session_status=sess.status,
                status=signup.status,
                waitlist_position=position,
            )
        )
    return out


@router.post("/sessions/{session_id}/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register_for_session(
    session_id: uuid.UUID,
    payload: RegisterIn,
    request: Request,
    current: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    ctx = request.app.state.ctx

    # 0) Rate limit per principal
    await limit_registration(request, current.sub)

    email = payload.email or current.email
    if not email:
        raise HTTPException(status_code=422, detail="email is required")

    try:
        ensure_may_register(email, caller_email=current.email, caller_is_admin=current.is_admin)
        # history belongs to the registrant, so only self-registrations carry the caller's subject
        is_self = bool(current.email) and signup_repo.registrant_key(current.email) == signup_repo.registrant_key(email)
        result = await register(
            db,
            session_id=session_id,
            registrant=Registrant(
                full_name=payload.full_name,
                email=email,
                class_year=payload.class_year,
                user_id=current.sub if is_self else None,
            ),
            notifier=ctx.notifier,
            attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)

    return RegisterOut(status=result.status, signup_id=result.signup_id, waitlist_position=result.waitlist_position)


@router.delete("/sessions/{session_id}/registration", response_model=CancelOut)
async def cancel_my_registration(
    session_id: uuid.UUID,
    request: Request,
    current: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    ctx = request.app.state.ctx
    if not current.email:
        raise HTTPException(status_code=422, detail="token carries no email")
    try:
        res = await cancel_own_signup(
            db,
            session_id=session_id,
            registrant_email=current.email,
            notifier=ctx.notifier,
            attempts=ctx.settings.TX_MAX_ATTEMPTS,
            base_delay_ms=ctx.settings.TX_RETRY_BASE_MS,
        )
    except RegistrationError as e:
        raise to_http(e)
    return CancelOut(deleted=res.deleted, prior_status=res.prior_status)
