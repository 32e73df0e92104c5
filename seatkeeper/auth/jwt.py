from __future__ import annotations
import time
from datetime import timedelta
from typing import Any, Dict
import jwt  # PyJWT

from ..config import Settings

ALGO = "HS256"


def _now() -> int:
    return int(time.time())


def create_jwt(settings: Settings, payload: Dict[str, Any], expires_in: timedelta) -> str:
    iat = _now()
    exp = iat + int(expires_in.total_seconds())
    to_encode = {
        "iss": settings.APP_NAME,
        "aud": settings.APP_NAME,
        "iat": iat,
        "exp": exp,
        **payload,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=ALGO)


def verify_jwt(settings: Settings, token: str) -> Dict[str, Any]:
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[ALGO],
        audience=settings.APP_NAME,
        issuer=settings.APP_NAME,
    )
