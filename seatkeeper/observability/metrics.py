from __future__ import annotations
import time
from fastapi import Response, Request
from prometheus_client import (
    Counter, Histogram, CollectorRegistry,
    CONTENT_TYPE_LATEST, generate_latest
)

REGISTRY = CollectorRegistry(auto_describe=True)

# ---------- Metric definitions ----------
HTTP_REQS = Counter("http_requests_total", "HTTP requests", ["method", "path", "status"], registry=REGISTRY)
HTTP_LATENCY = Histogram("http_request_duration_seconds", "HTTP request latency", ["method", "path"], registry=REGISTRY)

REG_CONFIRMED  = Counter("reg_confirmed_total",  "Registrations confirmed",          ["session_id"], registry=REGISTRY)
REG_WAITLISTED = Counter("reg_waitlisted_total", "Registrations waitlisted",         ["session_id"], registry=REGISTRY)
REG_DUPLICATE  = Counter("reg_duplicate_total",  "Registrations rejected as duplicate", ["session_id"], registry=REGISTRY)
SIGNUP_DELETED = Counter("signup_deleted_total", "Signups deleted",                  ["session_id", "source"], registry=REGISTRY)
TX_RETRIES     = Counter("tx_retries_total",     "Store transaction conflicts retried", ["op"], registry=REGISTRY)
NOTIFY_FAILURES = Counter("notify_failures_total", "Best-effort notifications that failed to enqueue", ["kind"], registry=REGISTRY)


# ---------- /metrics endpoint ----------
async def metrics_endpoint(request: Request) -> Response:
    if not request.app.state.ctx.settings.METRICS_ENABLED:
        return Response(status_code=404)
    data = generate_latest(REGISTRY)
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)


# ---------- HTTP middleware for latency/counters ----------
class MetricsHTTPMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)
        method = scope["method"]
        t0 = time.perf_counter()

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                # route template keeps label cardinality bounded (no raw ids)
                route = scope.get("route")
                path = getattr(route, "path", None) or "unmatched"
                HTTP_REQS.labels(method=method, path=path, status=message["status"]).inc()
                HTTP_LATENCY.labels(method=method, path=path).observe(time.perf_counter() - t0)
            await send(message)

        await self.app(scope, receive, send_wrapper)
