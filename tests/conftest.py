import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
import pytest_asyncio

from seatkeeper.auth.jwt import create_jwt
from seatkeeper.config import Settings
from seatkeeper.context import AppContext
from seatkeeper.models import Base
from seatkeeper.services.registration import Registrant, register
from seatkeeper.services.session_admin import SessionDraft, add_session


class FakeRedis:
    """In-memory stand-in for the handful of redis commands the app issues."""

    def __init__(self) -> None:
        self.kv: dict = {}
        self.streams: dict[str, list[dict]] = {}
        self.published: list[tuple[str, str]] = []
        self.closed = False

    async def ping(self):
        return True

    async def xadd(self, name, fields, **kwargs):
        entries = self.streams.setdefault(name, [])
        entries.append(dict(fields))
        return f"{len(entries)}-0"

    async def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    async def incr(self, key):
        self.kv[key] = int(self.kv.get(key, 0)) + 1
        return self.kv[key]

    async def expire(self, key, seconds):
        return True

    async def ttl(self, key):
        return 10 if key in self.kv else -2

    async def set(self, key, value, ex=None):
        self.kv[key] = value
        return True

    async def aclose(self):
        self.closed = True


class BrokenRedis(FakeRedis):
    """Every notification command fails, as if the server were gone."""

    async def xadd(self, name, fields, **kwargs):
        raise ConnectionError("redis down")

    async def publish(self, channel, message):
        raise ConnectionError("redis down")

    async def ping(self):
        raise ConnectionError("redis down")


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        ENV="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        JWT_SECRET="test-secret",
        ADMIN_ACCESS_CODE="open-sesame",
        RL_REG_PER_USER_10S=1000,
        TX_RETRY_BASE_MS=5,
        LOG_LEVEL="INFO",
    )
    values.update(overrides)
    return Settings(**values)


async def build_context(settings: Settings, redis=None) -> AppContext:
    ctx = AppContext.from_settings(settings, redis=redis if redis is not None else FakeRedis())
    async with ctx.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return ctx


@pytest_asyncio.fixture
async def settings(tmp_path):
    return make_settings(tmp_path)


# Fresh file-backed SQLite per test; disposed on the same loop that created it.
@pytest_asyncio.fixture
async def ctx(settings):
    c = await build_context(settings)
    yield c
    await c.aclose()


@pytest_asyncio.fixture
async def db(ctx):
    async with ctx.sessionmaker() as s:
        yield s


@pytest_asyncio.fixture
async def client(ctx):
    from seatkeeper.main import create_app

    app = create_app(context=ctx)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# ---------- helpers ----------
async def mk_session(
    db,
    *,
    capacity: Optional[int] = None,
    topic: str = "Intro to Git",
    starts_in: timedelta = timedelta(days=2),
    notifier=None,
) -> uuid.UUID:
    s = await add_session(
        db,
        SessionDraft(
            topic=topic,
            instructor="Dana Whitfield",
            location="Room 101",
            start_at=datetime.now(timezone.utc) + starts_in,
            capacity=capacity,
        ),
        notifier=notifier,
    )
    return s.id


async def reg(db, session_id: uuid.UUID, email: str, name: Optional[str] = None, notifier=None):
    return await register(
        db,
        session_id=session_id,
        registrant=Registrant(full_name=name or email.split("@")[0], email=email),
        notifier=notifier,
    )


def bearer(settings: Settings, *, email: Optional[str], role: str = "student", sub: Optional[str] = None) -> dict:
    token = create_jwt(
        settings,
        {"sub": sub or f"u-{uuid.uuid4().hex[:8]}", "email": email, "name": "Test User", "role": role},
        expires_in=timedelta(minutes=10),
    )
    return {"Authorization": f"Bearer {token}"}
