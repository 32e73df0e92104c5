from __future__ import annotations
from fastapi import HTTPException, Request, status


# ---- generic token counter (fixed window) ----
async def _hit(redis, key: str, window_sec: int, limit: int) -> None:
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, window_sec)
    if count > limit:
        ttl = await redis.ttl(key)
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="rate limit exceeded",
            headers={"Retry-After": str(max(ttl, 1)) if ttl and ttl > 0 else str(window_sec)},
        )


# ---- public helpers ----
async def limit_registration(req: Request, subject: str) -> None:
    ctx = req.app.state.ctx
    await _hit(ctx.redis, f"rl:reg:user:{subject}", window_sec=10, limit=ctx.settings.RL_REG_PER_USER_10S)
