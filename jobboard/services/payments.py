"""
Razorpay gateway client.

Only the two operations the plan flow needs: creating an order and checking
the signature Razorpay checkout hands back after payment.

Env configuration:
- RAZORPAY_KEY_ID / RAZORPAY_KEY_SECRET: required
- RAZORPAY_API_URL: API base (default https://api.razorpay.com/v1)
- PAYMENT_TIMEOUT_SEC, PAYMENT_RETRIES, PAYMENT_BACKOFF_FACTOR: HTTP tuning
"""
import asyncio
import hashlib
import hmac
import logging
from typing import Any, Dict

import httpx

from jobboard.core.config import settings

logger = logging.getLogger(__name__)

RECEIPT_MAX_LEN = 40


class PaymentGatewayError(Exception):
    pass


class PaymentGatewayNotConfigured(PaymentGatewayError):
    pass


def _credentials():
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise PaymentGatewayNotConfigured("Razorpay keys are not configured")
    return settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET


def build_receipt(user_id: str, timestamp_ms: int) -> str:
    return f"plan_{user_id}_{timestamp_ms}"[:RECEIPT_MAX_LEN]


async def _post_once(client: httpx.AsyncClient, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    resp = await client.post(f"{settings.RAZORPAY_API_URL.rstrip('/')}/{path.lstrip('/')}", json=payload)
    resp.raise_for_status()
    return resp.json()


async def create_order(amount: int, receipt: str) -> Dict[str, Any]:
    """
    Create an order for ``amount`` rupees. Razorpay works in paise, so the
    request carries amount * 100. Returns the order JSON (``id``, ``amount``...).
    Retries transport errors and 5xx answers with linear backoff.
    """
    auth = _credentials()
    body = {
        "amount": amount * 100,
        "currency": settings.PAYMENT_CURRENCY,
        "receipt": receipt,
        "payment_capture": 1,
    }
    async with httpx.AsyncClient(auth=auth, timeout=settings.PAYMENT_TIMEOUT_SEC) as client:
        for attempt in range(1, settings.PAYMENT_RETRIES + 2):
            try:
                order = await _post_once(client, "orders", body)
                logger.info("Created payment order %s (receipt=%s)", order.get("id"), receipt)
                return order
            except httpx.HTTPStatusError as exc:
                if exc.response.status_code < 500 or attempt > settings.PAYMENT_RETRIES:
                    logger.error("Razorpay rejected order %s: %s", receipt, exc.response.text[:200])
                    raise PaymentGatewayError("payment gateway rejected the order") from exc
            except httpx.TransportError as exc:
                if attempt > settings.PAYMENT_RETRIES:
                    logger.exception("Razorpay unreachable while creating order %s", receipt)
                    raise PaymentGatewayError("payment gateway unreachable") from exc
            await asyncio.sleep(settings.PAYMENT_BACKOFF_FACTOR * attempt)
    raise PaymentGatewayError("payment gateway unreachable")


def expected_signature(order_id: str, payment_id: str) -> str:
    _, secret = _credentials()
    body = f"{order_id}|{payment_id}"
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def signature_valid(order_id: str, payment_id: str, signature: str) -> bool:
    return hmac.compare_digest(expected_signature(order_id, payment_id), signature or "")
