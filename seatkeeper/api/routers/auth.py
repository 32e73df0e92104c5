from __future__ import annotations
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel

from ...auth.jwt import create_jwt
from ...auth.deps import Principal, get_current_principal
from ...domain.schemas.session import AdminLoginIn, TokenOut

log = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class PrincipalOut(BaseModel):
    sub: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str
    is_admin: bool

    @classmethod
    def from_principal(cls, p: Principal) -> "PrincipalOut":
        return cls(sub=p.sub, email=p.email, name=p.name, role=p.role, is_admin=p.is_admin)


def set_session_cookie(response: Response, request: Request, value: str, max_age_seconds: int):
    host = request.url.hostname or ""
    on_localhost = host in {"localhost", "127.0.0.1", "::1", "testserver", "test"}

    response.set_cookie(
        key=request.app.state.ctx.settings.SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        samesite="lax",
        path="/",
        max_age=max_age_seconds,
        secure=not on_localhost,
    )


@router.post("/admin-login", response_model=TokenOut)
async def admin_login(payload: AdminLoginIn, request: Request, response: Response):
    S = request.app.state.ctx.settings
    if not S.ADMIN_ACCESS_CODE:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")

    if not secrets.compare_digest(payload.code.encode("utf-8"), S.ADMIN_ACCESS_CODE.encode("utf-8")):
        log.warning("admin_login_rejected")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid access code")

    token = create_jwt(
        S,
        {"sub": f"admin:{uuid.uuid4().hex[:12]}", "role": "admin", "name": "admin"},
        expires_in=timedelta(minutes=S.JWT_EXPIRE_MINUTES),
    )
    set_session_cookie(response, request, token, max_age_seconds=S.JWT_EXPIRE_MINUTES * 60)
    log.info("admin_login")
    return TokenOut(access_token=token)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(request: Request):
    response = Response(status_code=status.HTTP_204_NO_CONTENT)
    response.delete_cookie(request.app.state.ctx.settings.SESSION_COOKIE_NAME, path="/")
    return response


@router.get("/me", response_model=PrincipalOut)
async def me(current: Principal = Depends(get_current_principal)) -> PrincipalOut:
    return PrincipalOut.from_principal(current)
