from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status

from .jwt import verify_jwt


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, built from verified token claims."""
    sub: str
    email: Optional[str]
    name: Optional[str]
    role: str = "student"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _token_from_request(request: Request) -> Optional[str]:
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return request.cookies.get(request.app.state.ctx.settings.SESSION_COOKIE_NAME)


def principal_from_request(request: Request) -> Optional[Principal]:
    """Best-effort decode for logging; never raises."""
    token = _token_from_request(request)
    if not token:
        return None
    try:
        claims = verify_jwt(request.app.state.ctx.settings, token)
    except jwt.PyJWTError:
        return None
    if not claims.get("sub"):
        return None
    return Principal(sub=str(claims["sub"]), email=claims.get("email"), name=claims.get("name"),
                     role=claims.get("role") or "student")


async def get_current_principal(request: Request) -> Principal:
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        claims = verify_jwt(request.app.state.ctx.settings, token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    sub = claims.get("sub")
    if not sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")

    return Principal(sub=str(sub), email=claims.get("email"), name=claims.get("name"),
                     role=claims.get("role") or "student")


async def require_admin(current: Principal = Depends(get_current_principal)) -> Principal:
    if not current.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin only")
    return current
