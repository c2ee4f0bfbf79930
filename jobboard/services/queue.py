# jobboard/services/queue.py
"""
Redis stream outbox for e-mail.

Each stream entry carries one ``OutboxMail`` as JSON under ``payload`` plus an
``idempotency_key``; the worker records delivered keys so an entry that is
redelivered after a crash is not sent twice.
"""
import json
import logging
import uuid
from typing import Dict, Optional, Tuple

import redis.asyncio as aioredis
from pydantic import BaseModel, EmailStr, ValidationError

from jobboard.core.config import settings

logger = logging.getLogger(__name__)

STREAM_KEY = "mail:outbox"
GROUP_NAME = "mail:senders"
DLQ_KEY = "mail:dlq"


class OutboxMail(BaseModel):
    to: EmailStr
    subject: str
    html: str


def _get_redis_client():
    return aioredis.from_url(settings.REDIS_URL, decode_responses=True)


async def ensure_group_exists(stream: str = STREAM_KEY, group: str = GROUP_NAME):
    client = _get_redis_client()
    # XGROUP CREATE <stream> <group> $ MKSTREAM
    try:
        await client.xgroup_create(name=stream, groupname=group, id="$", mkstream=True)
    except aioredis.ResponseError as exc:
        if "BUSYGROUP" in str(exc).upper():
            return
        raise


async def enqueue_mail(to: str, subject: str, html: str, idempotency_key: Optional[str] = None) -> str:
    """
    Validate an outgoing e-mail and add it to the outbox stream. Returns the
    stream id. Raises pydantic.ValidationError for a bad recipient.
    """
    mail = OutboxMail(to=to, subject=subject, html=html)
    entry = {
        "payload": mail.model_dump_json(),
        "idempotency_key": idempotency_key or uuid.uuid4().hex,
    }
    sid = await _get_redis_client().xadd(STREAM_KEY, entry)
    logger.debug("Queued e-mail to %s as %s", mail.to, sid)
    return str(sid)


def parse_entry(data: Dict[str, str]) -> Tuple[Optional[OutboxMail], str]:
    """Decode a stream entry into (mail, idempotency key); mail is None when unusable."""
    key = (data.get("idempotency_key") or "").strip()
    try:
        return OutboxMail.model_validate_json(data.get("payload") or ""), key
    except ValidationError:
        return None, key


async def move_to_dlq(stream_id: str, data: Dict[str, str], reason: str):
    """Park an entry in the dead-letter stream, keeping its raw payload."""
    entry = {
        "original_id": stream_id,
        "payload": data.get("payload") or "",
        "idempotency_key": data.get("idempotency_key") or "",
        "reason": reason,
    }
    return await _get_redis_client().xadd(DLQ_KEY, entry)
