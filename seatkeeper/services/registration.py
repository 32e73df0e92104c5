# seatkeeper/services/registration.py
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Signup
from ..observability.metrics import REG_CONFIRMED, REG_WAITLISTED, REG_DUPLICATE
from ..repos import sessions as sess_repo
from ..repos import signups as signup_repo
from .errors import Closed, Duplicate, InvalidInput, NotFound, Unauthorized
from .notifications import Notifier
from .tx import run_serializable

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Registrant:
    full_name: str
    email: str
    class_year: str = ""
    user_id: Optional[str] = None

    @property
    def key(self) -> str:
        return signup_repo.registrant_key(self.email)


@dataclass(frozen=True)
class RegistrationResult:
    status: str  # 'confirmed' | 'waitlist'
    signup_id: int
    waitlist_position: Optional[int] = None


def ensure_may_register(registrant_email: str, *, caller_email: Optional[str], caller_is_admin: bool) -> None:
    """Self-registration is limited to the caller's own registrant key; admins may register anyone."""
    if caller_is_admin:
        return
    if not caller_email or signup_repo.registrant_key(caller_email) != signup_repo.registrant_key(registrant_email):
        raise Unauthorized("may only register yourself")


def _normalize(registrant: Registrant) -> Registrant:
    full_name = (registrant.full_name or "").strip()
    email = (registrant.email or "").strip()
    if not full_name:
        raise InvalidInput("full_name is required")
    if not email or "@" not in email:
        raise InvalidInput("a valid email is required")
    return Registrant(
        full_name=full_name,
        email=email,
        class_year=(registrant.class_year or "").strip(),
        user_id=registrant.user_id,
    )


async def register(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    registrant: Registrant,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> RegistrationResult:
    """
    Place one registrant on a session, confirmed if a seat is free, otherwise
    on the waitlist.

    Runs as a single serializable transaction: the session row is locked, the
    duplicate check, the signup insert and the counter bump commit together
    or not at all. Conflicts are retried (bounded) by run_serializable.

    Raises NotFound, Closed, Duplicate, InvalidInput, ConflictRetryExhausted.
    """
    registrant = _normalize(registrant)
    key = registrant.key

    async def _attempt() -> tuple:
        # 1) Lock session row; status and counters stay fixed for this txn
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if not sess:
            raise NotFound("session")
        if sess.status != "open":
            raise Closed(f"session not open for registration: {sess.status}")

        # 2) One signup per registrant per session
        existing = await signup_repo.get_by_key(db, session_id, key)
        if existing:
            raise Duplicate(existing_status=existing.status, signup_id=existing.id)

        # 3-4) Seat decision
        status = "confirmed" if sess.has_seat else "waitlist"

        # 5) Signup row; created_at comes from the store
        signup = Signup(
            session_id=session_id,
            registrant_key=key,
            full_name=registrant.full_name,
            email=registrant.email,
            class_year=registrant.class_year,
            user_id=registrant.user_id,
            status=status,
        )
        db.add(signup)

        # 6) Exactly one counter moves
        if status == "confirmed":
            sess.confirmed_count += 1
        else:
            sess.waitlist_count += 1
        sess.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError as e:
            # unique (session_id, registrant_key) lost a race we could not see
            raise Duplicate() from e

        position = None
        if status == "waitlist":
            position = await signup_repo.waitlist_position(db, session_id, signup.id)
        return sess, signup, position

    try:
        sess, signup, position = await run_serializable(
            db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="register"
        )
    except Duplicate:
        REG_DUPLICATE.labels(session_id=str(session_id)).inc()
        raise

    # 7) committed
    if signup.status == "confirmed":
        REG_CONFIRMED.labels(session_id=str(session_id)).inc()
    else:
        REG_WAITLISTED.labels(session_id=str(session_id)).inc()
    log.info(
        "signup_created",
        extra={"session_id": str(session_id), "signup_id": signup.id, "status": signup.status},
    )

    if notifier is not None:
        await notifier.signup_created(sess, signup)
        await notifier.session_changed(
            session_id,
            "signup_created",
            signup_id=signup.id,
            status=signup.status,
            confirmed_count=sess.confirmed_count,
            waitlist_count=sess.waitlist_count,
        )

    return RegistrationResult(status=signup.status, signup_id=signup.id, waitlist_position=position)
