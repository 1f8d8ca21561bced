"""
Webhook Security Module

Signature verification for inbound Stripe webhooks:
- Constant-time signature comparison
- Timestamp validation against replays
- Signatures computed over the raw request body
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS) -> bool:
    """
    Verify webhook timestamp is within acceptable range.

    Args:
        timestamp: Unix timestamp as string
        max_age: Maximum age in seconds
    """
    try:
        age = abs(int(time.time()) - int(timestamp))
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp too old: {age}s (max: {max_age}s)")
        return False
    return True


def parse_stripe_signature(header: str) -> tuple[Optional[str], list[str]]:
    """Split "t=<ts>,v1=<sig>[,v1=<sig>...]" into the timestamp and its v1 signatures"""
    timestamp = None
    signatures = []
    for item in header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


async def verify_stripe_webhook(request: Request, secret: str) -> bytes:
    """
    Verify the Stripe-Signature header and return the raw body.

    Stripe signs "<timestamp>.<payload>" and may send several v1 signatures
    while a signing secret is being rolled; any one of them may match.
    """
    raw_body = await request.body()
    signature_header = request.headers.get("Stripe-Signature", "")

    if not signature_header:
        logger.warning("🚫 Stripe webhook missing signature header")
        raise HTTPException(status_code=401, detail="Missing webhook signature")

    timestamp, signatures = parse_stripe_signature(signature_header)
    if not timestamp or not signatures:
        logger.warning("🚫 Stripe webhook invalid signature format")
        raise HTTPException(status_code=401, detail="Invalid signature format")

    if not verify_timestamp(timestamp):
        raise HTTPException(status_code=401, detail="Webhook timestamp expired")

    expected_signature = compute_hmac_sha256(secret, timestamp.encode("utf-8") + b"." + raw_body)
    if not any(constant_time_compare(expected_signature, s) for s in signatures):
        logger.warning("🚫 Stripe webhook signature mismatch")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    logger.debug("✅ Stripe webhook signature verified")
    return raw_body


def create_stripe_signature(secret: str, payload: bytes, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a payload, used for local replays and tests"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = compute_hmac_sha256(secret, str(timestamp).encode("utf-8") + b"." + payload)
    return f"t={timestamp},v1={signature}"
