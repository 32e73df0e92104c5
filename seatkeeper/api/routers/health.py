from fastapi import APIRouter, Request
from ...db import db_health
from ...redis_client import redis_health

router = APIRouter(prefix="/health", tags=["health"])


async def _probe(request: Request) -> tuple[bool, bool]:
    ctx = request.app.state.ctx
    return await db_health(ctx.engine), await redis_health(ctx.redis)


@router.get("")
async def health(request: Request):
    db_ok, redis_ok = await _probe(request)
    status = "ok" if (db_ok and redis_ok) else "degraded"
    return {
        "status": status,
        "dependencies": {
            "database": db_ok,
            "redis": redis_ok,
        },
    }


@router.get("/readiness")
async def readiness(request: Request):
    db_ok, redis_ok = await _probe(request)
    return {"ready": bool(db_ok and redis_ok), "database": db_ok, "redis": redis_ok}


@router.get("/liveness")
async def liveness():
    return {"alive": True}
