"""Insert a handful of demo sessions: python -m seatkeeper.scripts.seed"""
from __future__ import annotations
import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone

from ..config import get_settings
from ..db import make_engine, make_sessionmaker
from ..models import Base
from ..observability.logging import setup_logging
from ..services.session_admin import SessionDraft, add_session

log = logging.getLogger(__name__)

DEMO_SESSIONS = [
    # topic, instructor, location, days from now, hour (UTC), capacity (-1 unlimited)
    ("Intro to Git", "Dana Whitfield", "Room 101", 2, 17, 20),
    ("Resume Workshop", "Priya Raman", "Career Center", 3, 19, 12),
    ("Study Skills Clinic", "Marcus Lee", "Library Annex", 5, 16, 8),
    ("Open Office Hours", "Sam Ortega", "Online", 7, 21, -1),
]


def parse_args():
    p = argparse.ArgumentParser(description="Seed demo sessions")
    p.add_argument("--create-schema", action="store_true",
                   help="create tables directly (local SQLite); production schemas come from Alembic")
    return p.parse_args()


async def amain() -> None:
    args = parse_args()
    settings = get_settings()
    setup_logging(settings)
    engine = make_engine(settings)
    try:
        if args.create_schema:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        Session = make_sessionmaker(engine)
        today = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
        async with Session() as db:
            for topic, instructor, location, days, hour, capacity in DEMO_SESSIONS:
                start = (today + timedelta(days=days)).replace(hour=hour)
                s = await add_session(
                    db,
                    SessionDraft(topic=topic, instructor=instructor, location=location,
                                 start_at=start, capacity=capacity),
                    default_minutes=settings.DEFAULT_SESSION_MINUTES,
                )
                log.info("seeded_session", extra={"session_id": str(s.id), "topic": topic})
    finally:
        await engine.dispose()


def main():
    asyncio.run(amain())


if __name__ == "__main__":
    main()
