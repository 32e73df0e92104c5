import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from seatkeeper.models import Session as SessionModel, Signup
from seatkeeper.repos import signups as signup_repo
from seatkeeper.services.errors import Duplicate
from seatkeeper.services.registration import Registrant, register
from seatkeeper.services.roster import delete_signup
from tests.conftest import mk_session

import pytest
pytestmark = pytest.mark.asyncio


async def _register_concurrently(ctx, session_id: uuid.UUID, emails: list[str]):
    async def one(email: str):
        async with ctx.sessionmaker() as s:
            return await register(
                s,
                session_id=session_id,
                registrant=Registrant(full_name=email.split("@")[0], email=email),
                attempts=ctx.settings.TX_MAX_ATTEMPTS,
            )

    return await asyncio.gather(*[one(e) for e in emails], return_exceptions=True)


async def _session_row(ctx, session_id: uuid.UUID) -> SessionModel:
    async with ctx.sessionmaker() as s:
        return (await s.execute(select(SessionModel).where(SessionModel.id == session_id))).scalar_one()


async def _waitlist_positions_unique(db: AsyncSession, session_id: uuid.UUID):
    rows = await signup_repo.list_roster(db, session_id)
    positions = [r.waitlist_position for r in rows if r.signup.status == "waitlist"]
    assert positions == list(range(1, len(positions) + 1))


async def test_concurrent_registrations_respect_capacity_and_waitlist(ctx, db: AsyncSession):
    N, cap = 15, 5
    sid = await mk_session(db, capacity=cap)

    results = await _register_concurrently(ctx, sid, [f"user{i}@x.test" for i in range(N)])

    errors = [r for r in results if isinstance(r, BaseException)]
    assert errors == []
    statuses = [r.status for r in results]
    assert statuses.count("confirmed") == cap
    assert statuses.count("waitlist") == N - cap

    sess = await _session_row(ctx, sid)
    assert sess.confirmed_count == cap
    assert sess.waitlist_count == N - cap
    assert await signup_repo.count_for_session(db, sid) == (cap, N - cap)
    await _waitlist_positions_unique(db, sid)


async def test_concurrent_duplicates_admit_exactly_one(ctx, db: AsyncSession):
    sid = await mk_session(db, capacity=3)

    results = await _register_concurrently(ctx, sid, ["Same@x.test", "same@x.test", " SAME@x.test", "same@X.TEST"])

    ok = [r for r in results if not isinstance(r, BaseException)]
    dups = [r for r in results if isinstance(r, Duplicate)]
    assert len(ok) == 1
    assert len(dups) == 3

    sess = await _session_row(ctx, sid)
    assert (sess.confirmed_count, sess.waitlist_count) == (1, 0)


async def test_concurrent_deletes_and_registrations_keep_counters_exact(ctx, db: AsyncSession):
    sid = await mk_session(db, capacity=4)
    await _register_concurrently(ctx, sid, [f"early{i}@x.test" for i in range(6)])

    ids = (await db.execute(select(Signup.id).where(Signup.session_id == sid))).scalars().all()
    await db.rollback()

    async def drop(signup_id: int):
        async with ctx.sessionmaker() as s:
            return await delete_signup(s, session_id=sid, signup_id=signup_id)

    await asyncio.gather(
        *[drop(i) for i in ids[:3]],
        # the same delete twice must only count once
        drop(ids[0]),
        _register_concurrently(ctx, sid, [f"late{i}@x.test" for i in range(4)]),
    )

    sess = await _session_row(ctx, sid)
    confirmed, waitlist = await signup_repo.count_for_session(db, sid)
    assert (sess.confirmed_count, sess.waitlist_count) == (confirmed, waitlist)
    assert confirmed + waitlist == 6 - 3 + 4
    assert sess.confirmed_count <= 4


async def test_cancelled_registration_leaves_nothing_behind(ctx, db, monkeypatch):
    sid = await mk_session(db, capacity=1)
    async with ctx.sessionmaker() as s:
        await register(s, session_id=sid, registrant=Registrant(full_name="Ann", email="ann@x.test"))

    entered = asyncio.Event()
    real_position = signup_repo.waitlist_position

    async def _stall_first(session, session_id, signup_id):
        # the row is flushed and the write lock held at this point
        if not entered.is_set():
            entered.set()
            await asyncio.Event().wait()
        return await real_position(session, session_id, signup_id)

    monkeypatch.setattr(signup_repo, "waitlist_position", _stall_first)

    async def _abandoned():
        async with ctx.sessionmaker() as s:
            await register(s, session_id=sid, registrant=Registrant(full_name="Bo", email="bo@x.test"))

    task = asyncio.create_task(_abandoned())
    await asyncio.wait_for(entered.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    # the write lock was released, so the next registration goes through promptly
    async with ctx.sessionmaker() as s:
        res = await asyncio.wait_for(
            register(s, session_id=sid, registrant=Registrant(full_name="Cy", email="cy@x.test")), timeout=5
        )
    assert res.status == "waitlist"
    assert res.waitlist_position == 1

    row = await _session_row(ctx, sid)
    assert (row.confirmed_count, row.waitlist_count) == (1, 1)
    async with ctx.sessionmaker() as s:
        assert await signup_repo.count_for_session(s, sid) == (1, 1)
        assert await signup_repo.get_by_key(s, sid, "bo@x.test") is None
