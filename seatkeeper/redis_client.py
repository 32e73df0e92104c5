import logging
from redis import asyncio as aioredis
from .config import Settings

log = logging.getLogger(__name__)


def make_redis(settings: Settings) -> aioredis.Redis:
    # from_url is lazy; nothing connects until the first command
    return aioredis.from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)


async def redis_health(client) -> bool:
    try:
        pong = await client.ping()
        return bool(pong)
    except Exception:
        log.warning("redis_health_failed", exc_info=True)
        return False
