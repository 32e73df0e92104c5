from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from ..models import Session, Signup
from ..observability.metrics import NOTIFY_FAILURES

log = logging.getLogger(__name__)

SESSIONS_CHANNEL = "sessions"


def session_channel(session_id: uuid.UUID) -> str:
    return f"session:{session_id}"


def _iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


class Notifier:
    """
    Post-commit side channel. Everything here is fire-and-forget: callers
    invoke it only after their transaction committed, and a failure is logged
    and counted, never raised.
    """

    def __init__(self, redis, *, stream: str) -> None:
        self._redis = redis
        self._stream = stream

    async def signup_created(self, sess: Session, signup: Signup) -> None:
        fields = {
            "email": signup.email,
            "full_name": signup.full_name,
            "status": signup.status,
            "session_id": str(sess.id),
            "topic": sess.topic,
            "instructor": sess.instructor,
            "start_at": _iso(sess.start_at),
            "location": sess.location,
        }
        try:
            await self._redis.xadd(self._stream, fields=fields)
        except Exception:
            NOTIFY_FAILURES.labels(kind="signup_created").inc()
            log.warning("notify_enqueue_failed", extra={"session_id": str(sess.id)}, exc_info=True)

    async def session_changed(self, session_id: uuid.UUID, event: str, **payload: Any) -> None:
        """Publish a change event for live projections (session list and roster streams)."""
        message = json.dumps(
            {
                "type": event,
                "session_id": str(session_id),
                "ts": datetime.now(timezone.utc).isoformat(),
                **payload,
            },
            default=str,
        )
        try:
            await self._redis.publish(session_channel(session_id), message)
            await self._redis.publish(SESSIONS_CHANNEL, message)
        except Exception:
            NOTIFY_FAILURES.labels(kind=event).inc()
            log.warning("publish_failed", extra={"session_id": str(session_id), "event": event}, exc_info=True)
