# seatkeeper/services/roster.py
from __future__ import annotations
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Session as SessionModel, Signup
from ..observability.metrics import SIGNUP_DELETED
from ..repos import sessions as sess_repo
from ..repos import signups as signup_repo
from .errors import Duplicate, InvalidInput, NotFound
from .notifications import Notifier
from .tx import run_serializable

log = logging.getLogger(__name__)

STATUSES = ("confirmed", "waitlist")


@dataclass(frozen=True)
class DeleteResult:
    deleted: bool
    prior_status: Optional[str] = None


@dataclass(frozen=True)
class SignupPatch:
    full_name: Optional[str] = None
    email: Optional[str] = None
    class_year: Optional[str] = None
    status: Optional[str] = None


def _counter_attr(status: str) -> str:
    return "confirmed_count" if status == "confirmed" else "waitlist_count"


def _decrement(sess: SessionModel, status: str) -> None:
    attr = _counter_attr(status)
    current = getattr(sess, attr)
    if current <= 0:
        # safety net only: a signup exists, so its counter should be >= 1
        log.warning("counter_floor_applied", extra={"session_id": str(sess.id), "counter": attr})
        setattr(sess, attr, 0)
        return
    setattr(sess, attr, current - 1)


def _increment(sess: SessionModel, status: str) -> None:
    attr = _counter_attr(status)
    setattr(sess, attr, max(0, getattr(sess, attr)) + 1)


async def _delete_locked(db: AsyncSession, sess: SessionModel, signup: Optional[Signup]) -> DeleteResult:
    """Delete a signup under the session lock and reverse its counter; caller owns the transaction."""
    if signup is None:
        return DeleteResult(deleted=False)

    prior = signup.status
    await db.delete(signup)
    _decrement(sess, prior)
    sess.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return DeleteResult(deleted=True, prior_status=prior)


async def _after_delete(
    session_id: uuid.UUID, signup_id: Optional[int], result: DeleteResult,
    notifier: Optional[Notifier], source: str,
) -> None:
    if not result.deleted:
        return
    SIGNUP_DELETED.labels(session_id=str(session_id), source=source).inc()
    log.info(
        "signup_deleted",
        extra={"session_id": str(session_id), "signup_id": signup_id, "prior_status": result.prior_status, "source": source},
    )
    if notifier is not None:
        await notifier.session_changed(
            session_id, "signup_deleted", signup_id=signup_id, prior_status=result.prior_status
        )


async def delete_signup(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    signup_id: int,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> DeleteResult:
    """
    Admin removal of a signup. Idempotent: an already-gone signup is a no-op.
    The counter matching the signup's prior status drops by one in the same
    transaction as the delete. No waitlist promotion happens here.
    """
    async def _attempt() -> DeleteResult:
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if sess is None:
            # signups cascade with their session, so nothing is left to remove
            return DeleteResult(deleted=False)
        signup = await signup_repo.get_by_id(db, session_id, signup_id)
        return await _delete_locked(db, sess, signup)

    result = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="delete_signup"
    )
    await _after_delete(session_id, signup_id, result, notifier, source="admin")
    return result


async def cancel_own_signup(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    registrant_email: str,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> DeleteResult:
    """The registrant's own cancellation, resolved by registrant key. Same semantics as delete_signup."""
    key = signup_repo.registrant_key(registrant_email or "")
    if not key:
        raise InvalidInput("registrant email is required")

    found: dict = {}

    async def _attempt() -> DeleteResult:
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if sess is None:
            raise NotFound("session")
        signup = await signup_repo.get_by_key(db, session_id, key)
        found["id"] = signup.id if signup else None
        return await _delete_locked(db, sess, signup)

    result = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="cancel_own"
    )
    await _after_delete(session_id, found.get("id"), result, notifier, source="self")
    return result


def _validate_patch(patch: SignupPatch) -> None:
    if patch.status is not None and patch.status not in STATUSES:
        raise InvalidInput("status must be 'confirmed' or 'waitlist'")
    if patch.full_name is not None and not patch.full_name.strip():
        raise InvalidInput("full_name cannot be empty")
    if patch.email is not None and "@" not in patch.email:
        raise InvalidInput("a valid email is required")


async def update_signup(
    db: AsyncSession,
    *,
    session_id: uuid.UUID,
    signup_id: int,
    patch: SignupPatch,
    notifier: Optional[Notifier] = None,
    attempts: int = 5,
    base_delay_ms: int = 20,
) -> Signup:
    """
    Admin edit of a signup. Descriptive fields change freely; a status change
    moves one unit from the old counter to the new one (both floored at 0).
    Capacity is not re-checked when an admin promotes from the waitlist.
    """
    _validate_patch(patch)

    async def _attempt() -> tuple:
        sess = await sess_repo.get_session(db, session_id, for_update=True)
        if sess is None:
            raise NotFound("session")
        signup = await signup_repo.get_by_id(db, session_id, signup_id)
        if signup is None:
            raise NotFound("signup")

        old_status = signup.status
        if patch.full_name is not None:
            signup.full_name = patch.full_name.strip()
        if patch.class_year is not None:
            signup.class_year = patch.class_year.strip()
        if patch.email is not None:
            signup.email = patch.email.strip()
            signup.registrant_key = signup_repo.registrant_key(patch.email)

        status_changed = patch.status is not None and patch.status != old_status
        if status_changed:
            signup.status = patch.status
            _decrement(sess, old_status)
            _increment(sess, patch.status)
            sess.updated_at = datetime.now(timezone.utc)

        try:
            await db.flush()
        except IntegrityError as e:
            raise Duplicate("another signup already uses that email") from e
        return signup, old_status, status_changed

    signup, old_status, status_changed = await run_serializable(
        db, _attempt, attempts=attempts, base_delay_ms=base_delay_ms, op="update_signup"
    )

    log.info(
        "signup_updated",
        extra={"session_id": str(session_id), "signup_id": signup_id, "old_status": old_status, "status": signup.status},
    )
    if notifier is not None:
        await notifier.session_changed(
            session_id, "signup_updated", signup_id=signup_id, status=signup.status, status_changed=status_changed
        )
    return signup
