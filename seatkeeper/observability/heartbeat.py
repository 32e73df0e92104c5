from __future__ import annotations
import asyncio
import logging
from datetime import datetime, timezone

log = logging.getLogger(__name__)


async def beat(redis, key: str, interval_sec: int = 5, ttl_sec: int = 20):
    while True:
        try:
            await redis.set(key, datetime.now(timezone.utc).isoformat(), ex=ttl_sec)
        except Exception:
            log.warning("heartbeat_failed", extra={"key": key}, exc_info=True)
        await asyncio.sleep(interval_sec)
