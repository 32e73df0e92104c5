from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from .config import Settings
from .db import make_engine, make_sessionmaker
from .redis_client import make_redis
from .services.notifications import Notifier


@dataclass
class AppContext:
    """Process resources shared by request handlers and workers."""
    settings: Settings
    engine: AsyncEngine
    sessionmaker: async_sessionmaker[AsyncSession]
    redis: Any
    notifier: Notifier

    @classmethod
    def from_settings(cls, settings: Settings, *, redis: Optional[Any] = None) -> "AppContext":
        engine = make_engine(settings)
        client = redis if redis is not None else make_redis(settings)
        return cls(
            settings=settings,
            engine=engine,
            sessionmaker=make_sessionmaker(engine),
            redis=client,
            notifier=Notifier(client, stream=settings.NOTIFY_STREAM),
        )

    async def aclose(self) -> None:
        await self.redis.aclose()
        await self.engine.dispose()
