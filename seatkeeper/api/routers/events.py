from __future__ import annotations
import asyncio
import json
import logging
import uuid
from typing import AsyncIterator

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from ...services.notifications import SESSIONS_CHANNEL, session_channel

log = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

KEEPALIVE_SEC = 5.0


# SSE frame helper
def _sse(data: dict) -> bytes:
    return f"data: {json.dumps(data, separators=(',',':'))}\n\n".encode("utf-8")


async def _stream_pubsub(request: Request, channel: str) -> AsyncIterator[bytes]:
    pubsub = request.app.state.ctx.redis.pubsub()
    await pubsub.subscribe(channel)
    try:
        # initial comment to open stream
        yield b": ok\n\n"
        while not await request.is_disconnected():
            msg = await pubsub.get_message(ignore_subscribe_messages=True, timeout=KEEPALIVE_SEC)
            if msg and msg.get("type") == "message":
                payload = msg["data"]
                # decode_responses gives str; a raw client gives bytes
                if isinstance(payload, (bytes, bytearray)):
                    payload = payload.decode("utf-8", "ignore")
                try:
                    js = json.loads(payload)
                except ValueError:
                    js = {"raw": payload}
                yield _sse(js)
            else:
                yield b": keepalive\n\n"
                await asyncio.sleep(0)
    finally:
        try:
            await pubsub.unsubscribe(channel)
        except Exception:
            log.debug("pubsub_unsubscribe_failed", extra={"channel": channel}, exc_info=True)
        await pubsub.aclose()


@router.get("/sessions")
async def sse_sessions(request: Request):
    return StreamingResponse(_stream_pubsub(request, SESSIONS_CHANNEL), media_type="text/event-stream")


@router.get("/sessions/{session_id}")
async def sse_session(session_id: uuid.UUID, request: Request):
    return StreamingResponse(_stream_pubsub(request, session_channel(session_id)), media_type="text/event-stream")
