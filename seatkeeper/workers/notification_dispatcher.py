from __future__ import annotations
import argparse
import asyncio
import logging
import os
import socket
from typing import Any, Dict

from ..config import get_settings
from ..observability.heartbeat import beat
from ..observability.logging import setup_logging
from ..redis_client import make_redis
from ..services.mailer import ResendMailer, render_signup_email

logger = logging.getLogger(__name__)

GROUP = "mailers"


async def _ensure_group(redis, stream: str, group: str) -> None:
    try:
        await redis.xgroup_create(stream, group, id="0", mkstream=True)
    except Exception as e:
        if "BUSYGROUP" in str(e):
            return
        raise


async def handle_entry(mailer: ResendMailer, fields: Dict[str, Any]) -> bool:
    """Deliver one stream entry. False leaves it pending for redelivery."""
    to = fields.get("email")
    if not to:
        logger.warning("notify_entry_without_email", extra={"fields": fields})
        return True  # nothing to deliver; ack so it does not loop
    subject, body = render_signup_email(fields)
    sent = await mailer.send(to=to, subject=subject, body=body)
    if sent:
        logger.info("signup_mail_sent", extra={"session_id": fields.get("session_id"), "status": fields.get("status")})
    return sent


async def process_batch(redis, mailer: ResendMailer, *, stream: str, consumer: str,
                        count: int = 10, block_ms: int = 5000, pending: bool = False) -> int:
    """Read up to `count` entries for this consumer, deliver them and ack the delivered ones."""
    # "0" replays this consumer's unacked entries, ">" reads new ones
    resp = await redis.xreadgroup(GROUP, consumer, streams={stream: "0" if pending else ">"},
                                  count=count, block=None if pending else block_ms)
    if not resp:
        return 0
    acked = 0
    _, messages = resp[0]
    for msg_id, fields in messages:
        try:
            ok = await handle_entry(mailer, fields)
        except Exception:
            logger.exception("notify_entry_failed", extra={"msg_id": msg_id})
            ok = False
        if ok:
            await redis.xack(stream, GROUP, msg_id)
            acked += 1
    return acked


async def worker_loop(redis, mailer: ResendMailer, stream: str, consumer: str) -> None:
    await _ensure_group(redis, stream, GROUP)
    # drain anything a previous run of this consumer left unacked
    await process_batch(redis, mailer, stream=stream, consumer=consumer, count=100, pending=True)
    logger.info("notification dispatcher consuming %s as %s", stream, consumer)
    while True:
        try:
            await process_batch(redis, mailer, stream=stream, consumer=consumer)
        except Exception:
            logger.exception("notify_batch_failed")
            await asyncio.sleep(1.0)


def parse_args():
    p = argparse.ArgumentParser(description="Signup notification dispatcher")
    p.add_argument("--consumer", default=f"{socket.gethostname()}-{os.getpid()}", help="Consumer name in the group")
    return p.parse_args()


async def amain():
    args = parse_args()
    settings = get_settings()
    setup_logging(settings)
    redis = make_redis(settings)
    mailer = ResendMailer(settings)
    hb = asyncio.create_task(beat(redis, f"hb:notification_dispatcher:{args.consumer}"))
    try:
        await worker_loop(redis, mailer, settings.NOTIFY_STREAM, args.consumer)
    finally:
        hb.cancel()
        await redis.aclose()


def main():
    asyncio.run(amain())


if __name__ == "__main__":
    main()
