from __future__ import annotations
import asyncio
import logging
import random
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..observability.metrics import TX_RETRIES
from .errors import ConflictRetryExhausted

log = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


async def begin_serializable_tx(db: AsyncSession) -> None:
    """
    Ensure we're not inside an active transaction, then start a new one where
    the very first statement is 'SET TRANSACTION ISOLATION LEVEL SERIALIZABLE'.

    SQLite has no isolation levels; its engine opens every transaction with
    BEGIN IMMEDIATE (see db.make_engine), which already serializes writers.
    """
    # End any auto-begun tx from earlier reads on the same session (safe if none).
    if db.in_transaction():
        await db.rollback()

    if db.bind.dialect.name == "postgresql":
        # This execute implicitly BEGINs; SET TRANSACTION is its first statement.
        await db.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))


def is_retryable(exc: BaseException) -> bool:
    if not isinstance(exc, DBAPIError) or isinstance(exc, IntegrityError):
        return False
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _RETRYABLE_SQLSTATES:
        return True
    # SQLite reports lock contention as OperationalError("database is locked")
    return "database is locked" in str(orig).lower()


async def run_serializable(
    db: AsyncSession,
    work: Callable[[], Awaitable[T]],
    *,
    attempts: int = 5,
    base_delay_ms: int = 20,
    op: str = "tx",
) -> T:
    """
    Run `work` inside a fresh serializable transaction and commit it.

    Conflicts reported by the store are retried up to `attempts` times with a
    jittered backoff, then surfaced as ConflictRetryExhausted. Anything else
    (domain errors included) rolls back and propagates unchanged. Every attempt
    either commits as a whole or leaves nothing behind.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            await begin_serializable_tx(db)
            result = await work()
            await db.commit()
            return result
        except DBAPIError as e:
            await db.rollback()
            if not is_retryable(e):
                raise
            TX_RETRIES.labels(op=op).inc()
            if attempt >= attempts:
                log.warning("tx_retry_exhausted", extra={"op": op, "attempts": attempt})
                raise ConflictRetryExhausted(attempt) from e
            delay = (base_delay_ms * (2 ** (attempt - 1)) + random.uniform(0, base_delay_ms)) / 1000
            log.info("tx_retry", extra={"op": op, "attempt": attempt, "delay_ms": int(delay * 1000)})
            await asyncio.sleep(delay)
        except BaseException:
            # domain errors, cancellation: nothing from this attempt may persist
            await db.rollback()
            raise
