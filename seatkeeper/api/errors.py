from __future__ import annotations
from fastapi import HTTPException, status

from ..services.errors import (
    Closed, ConflictRetryExhausted, Duplicate, InvalidInput, NotFound, RegistrationError, Unauthorized,
)


def to_http(e: RegistrationError) -> HTTPException:
    """Map a domain error to the HTTP response the routers raise."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{e} not found")
    if isinstance(e, Duplicate):
        # soft success: the client can show what the registrant already holds
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "status": e.existing_status, "signup_id": e.signup_id},
        )
    if isinstance(e, Closed):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if isinstance(e, Unauthorized):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, InvalidInput):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, ConflictRetryExhausted):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="too much contention, try again",
            headers={"Retry-After": "1"},
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="registration error")
