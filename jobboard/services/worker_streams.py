# jobboard/services/worker_streams.py
"""
Mail outbox worker.

Run with:  python -m jobboard.services.worker_streams [consumer_name] [max_retries]

Reads e-mails queued by mailer.send_email (MAIL_BACKEND=queue) from the Redis
stream, delivers them over SMTP, retries failures and parks messages that keep
failing in the dead-letter stream.
"""
import asyncio
import logging
import uuid
from typing import Dict, List, Tuple

import redis.asyncio as aioredis

from jobboard.core.config import settings
from jobboard.services import mailer
from jobboard.services.queue import (
    STREAM_KEY,
    GROUP_NAME,
    _get_redis_client,
    ensure_group_exists,
    move_to_dlq,
    parse_entry,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = settings.WORKER_MAX_RETRIES
CLAIM_IDLE_MS = settings.WORKER_CLAIM_IDLE_MS  # reclaim pending msgs older than this
READ_BLOCK_MS = settings.WORKER_READ_BLOCK_MS
PROCESSED_TTL_SEC = 60 * 60 * 24 * 7
RETRY_COUNTER_TTL_SEC = 60 * 60 * 24


async def _finish(client: aioredis.Redis, msg_id: str) -> None:
    await client.xack(STREAM_KEY, GROUP_NAME, msg_id)
    await client.xdel(STREAM_KEY, msg_id)
    await client.delete(f"retries:{msg_id}")


async def _handle_failure(client: aioredis.Redis, msg_id: str, data: Dict[str, str], max_retries: int) -> None:
    """
    Count a failed delivery. The entry stays pending until max_retries is
    reached, then it is moved to the DLQ and acknowledged.
    """
    retries_key = f"retries:{msg_id}"
    retries = await client.incr(retries_key)
    await client.expire(retries_key, RETRY_COUNTER_TTL_SEC)
    logger.warning("Message %s failed (retry %s/%s)", msg_id, retries, max_retries)
    if retries >= max_retries:
        await move_to_dlq(msg_id, data, reason=f"exceeded {max_retries} retries")
        await _finish(client, msg_id)
        logger.error("Message %s moved to the dead-letter stream", msg_id)


async def _handle_pending_claims(client: aioredis.Redis, consumer_name: str, max_retries: int = DEFAULT_MAX_RETRIES) -> None:
    """
    Claim and process pending entries that have been idle for >= CLAIM_IDLE_MS
    (left behind by a crashed consumer, or failed deliveries waiting for a retry).
    """
    pending_info = await client.xpending_range(STREAM_KEY, GROUP_NAME, min="-", max="+", count=10)
    for item in pending_info or []:
        msg_id = item["message_id"]
        if item["time_since_delivered"] < CLAIM_IDLE_MS:
            continue
        logger.info("Attempting to claim pending msg %s (idle %sms)", msg_id, item["time_since_delivered"])
        claimed = await client.xclaim(STREAM_KEY, GROUP_NAME, consumer_name, min_idle_time=CLAIM_IDLE_MS, message_ids=[msg_id])
        for cid, data in claimed or []:
            parsed = dict(data)
            if await _process_message(cid, parsed):
                await _finish(client, cid)
            else:
                await _handle_failure(client, cid, parsed, max_retries)


async def _process_message(message_id: str, data: Dict[str, str]) -> bool:
    """
    Deliver a single outbox entry. Returns True on success (or when the entry
    is unusable and retrying would not help), False to trigger a retry.
    """
    mail, idempotency_key = parse_entry(data)
    if mail is None:
        logger.error("Message %s has an unusable payload; dropping", message_id)
        return True

    processed_key = f"mail:sent:{idempotency_key}" if idempotency_key else None
    if processed_key:
        client = _get_redis_client()
        if await client.exists(processed_key):
            logger.info("Skipping already delivered message: %s", idempotency_key)
            return True

    ok = await mailer.deliver(mail.to, mail.subject, mail.html)
    if ok and processed_key:
        await client.set(processed_key, "1", ex=PROCESSED_TTL_SEC)
    if ok:
        logger.info("Message %s delivered to %s", message_id, mail.to)
    return ok


async def worker_loop(consumer_name: str = None, max_retries: int = DEFAULT_MAX_RETRIES):
    """
    Main loop polling the outbox via a consumer group.
    - Claims pending items older than CLAIM_IDLE_MS
    - Reads new entries with XREADGROUP
    - On failure increments a retry counter; at max_retries moves the entry to the DLQ
    """
    consumer_name = consumer_name or f"mailer-{uuid.uuid4().hex[:8]}"
    client = _get_redis_client()
    logger.info("Worker '%s' starting and connecting to Redis...", consumer_name)
    await ensure_group_exists()

    while True:
        try:
            try:
                await _handle_pending_claims(client, consumer_name, max_retries)
            except aioredis.RedisError:
                logger.exception("Error while handling pending claims")

            entries: List[Tuple[str, List[Tuple[str, Dict[str, str]]]]] = await client.xreadgroup(
                groupname=GROUP_NAME,
                consumername=consumer_name,
                streams={STREAM_KEY: ">"},
                count=10,
                block=READ_BLOCK_MS,
            )
            if not entries:
                await asyncio.sleep(0.05)
                continue

            for _stream, messages in entries:
                for msg_id, data in messages:
                    parsed = dict(data)
                    if await _process_message(msg_id, parsed):
                        await _finish(client, msg_id)
                    else:
                        await _handle_failure(client, msg_id, parsed, max_retries)
        except asyncio.CancelledError:
            logger.info("Worker '%s' cancelled, shutting down.", consumer_name)
            break
        except Exception:
            logger.exception("Worker main loop error, sleeping briefly before retrying")
            await asyncio.sleep(1)


if __name__ == "__main__":
    import sys

    logging.basicConfig(level=settings.LOG_LEVEL)
    cname = sys.argv[1] if len(sys.argv) >= 2 else None
    m_retries = int(sys.argv[2]) if len(sys.argv) >= 3 else DEFAULT_MAX_RETRIES

    logger.info("Starting mail worker (consumer=%s, max_retries=%s)...", cname or "auto", m_retries)
    try:
        asyncio.run(worker_loop(consumer_name=cname, max_retries=m_retries))
    except KeyboardInterrupt:
        logger.info("Worker interrupted by user; exiting.")
