import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from seatkeeper.observability.metrics import REGISTRY
from seatkeeper.services.errors import ConflictRetryExhausted, NotFound
from seatkeeper.services import tx as tx_module
from seatkeeper.services.tx import is_retryable, run_serializable

pytestmark = pytest.mark.asyncio


class _PgError(Exception):
    def __init__(self, sqlstate):
        super().__init__(f"sqlstate {sqlstate}")
        self.sqlstate = sqlstate


def _locked() -> OperationalError:
    return OperationalError("UPDATE sessions ...", {}, Exception("database is locked"))


async def test_retryable_classification():
    assert is_retryable(_locked())
    assert is_retryable(OperationalError("stmt", {}, _PgError("40001")))
    assert is_retryable(OperationalError("stmt", {}, _PgError("40P01")))
    assert not is_retryable(OperationalError("stmt", {}, _PgError("42P01")))
    assert not is_retryable(IntegrityError("stmt", {}, _PgError("40001")))
    assert not is_retryable(NotFound("session"))


async def test_conflict_then_success_is_retried(db):
    calls = []
    before = REGISTRY.get_sample_value("tx_retries_total", {"op": "retry-once"}) or 0.0

    async def work():
        calls.append(1)
        if len(calls) == 1:
            raise _locked()
        return "done"

    assert await run_serializable(db, work, attempts=3, base_delay_ms=1, op="retry-once") == "done"
    assert len(calls) == 2
    assert REGISTRY.get_sample_value("tx_retries_total", {"op": "retry-once"}) == before + 1


async def test_persistent_conflict_exhausts(db):
    calls = []

    async def work():
        calls.append(1)
        raise _locked()

    with pytest.raises(ConflictRetryExhausted) as ei:
        await run_serializable(db, work, attempts=4, base_delay_ms=1)
    assert len(calls) == 4
    assert ei.value.attempts == 4


async def test_domain_errors_are_not_retried(db):
    calls = []

    async def work():
        calls.append(1)
        raise NotFound("session")

    with pytest.raises(NotFound):
        await run_serializable(db, work, attempts=5, base_delay_ms=1)
    assert len(calls) == 1
    assert not db.in_transaction()


async def test_backoff_scales_with_base_delay(db, monkeypatch):
    delays = []

    async def _no_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr(tx_module.asyncio, "sleep", _no_sleep)
    monkeypatch.setattr(tx_module.random, "uniform", lambda a, b: 0)

    calls = []

    async def work():
        calls.append(1)
        if len(calls) < 3:
            raise _locked()
        return "done"

    assert await run_serializable(db, work, attempts=3, base_delay_ms=7) == "done"
    assert delays == [0.007, 0.014]
