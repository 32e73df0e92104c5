from __future__ import annotations
import logging
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from ..observability.logging import get_request_id
from ..auth.deps import principal_from_request

log = logging.getLogger("seatkeeper.request")


class RequestContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        header = request.app.state.ctx.settings.REQUEST_ID_HEADER
        rid = get_request_id(request, header)
        request.state.request_id = rid
        start = time.perf_counter()

        # Invalid/expired token - principal stays anonymous
        principal = principal_from_request(request)
        fields = {
            "request_id": rid,
            "path": request.url.path,
            "method": request.method,
            "user_id": principal.sub if principal else "anonymous",
            "role": principal.role if principal else None,
        }

        try:
            response = await call_next(request)
        except Exception:
            fields["ms"] = int((time.perf_counter() - start) * 1000)
            log.error("unhandled_error", extra=fields, exc_info=True)
            raise

        fields["ms"] = int((time.perf_counter() - start) * 1000)
        fields["status"] = response.status_code
        response.headers[header] = rid
        log.info("request", extra=fields)
        return response
