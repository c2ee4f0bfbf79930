"""
Outgoing e-mail.

send_email() is what the rest of the app calls. Depending on MAIL_BACKEND it
delivers over SMTP right away, pushes the message to the Redis outbox stream
(delivered later by worker_streams), or only logs it.
"""
import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

from pydantic import ValidationError
from redis.exceptions import RedisError

from jobboard.core.config import settings
from jobboard.services import queue

logger = logging.getLogger(__name__)


def build_message(to: str, subject: str, html: str) -> MIMEMultipart:
    sender = settings.MAIL_FROM or settings.SMTP_USER or "no-reply@localhost"
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.MAIL_FROM_NAME, sender))
    msg["To"] = to
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _send_smtp_sync(msg: MIMEMultipart, to: str) -> None:
    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SEC) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg, to_addrs=[to])


async def deliver(to: str, subject: str, html: str) -> bool:
    """Send one message over SMTP. Returns False (and logs) on failure."""
    msg = build_message(to, subject, html)
    loop = asyncio.get_event_loop()
    try:
        # smtplib is blocking
        await loop.run_in_executor(None, _send_smtp_sync, msg, to)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send e-mail to %s (%s)", to, subject)
        return False
    logger.info("E-mail sent to %s: %s", to, subject)
    return True


async def send_email(to: str, subject: str, html: str) -> bool:
    backend = settings.MAIL_BACKEND.lower()
    if backend == "console":
        logger.info("[console mail] to=%s subject=%s", to, subject)
        return True
    if backend == "queue":
        try:
            await queue.enqueue_mail(to, subject, html)
        except (RedisError, ValidationError, OSError):
            logger.exception("Could not enqueue e-mail to %s", to)
            return False
        return True
    return await deliver(to, subject, html)
