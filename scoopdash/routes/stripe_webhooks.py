"""
Stripe Webhook Handler
Records customer charges as Payment rows, the system side of reconciliation
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..models import Customer, Payment
from ..services.stripe_service import from_cents
from ..webhook_security import verify_stripe_webhook

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks/stripe", tags=["webhooks"])

PAYMENT_STATUS_BY_EVENT = {
    "payment_intent.succeeded": "paid",
    "payment_intent.payment_failed": "failed",
}


def _find_customer(db: Session, intent: dict[str, Any]) -> Optional[Customer]:
    """Our customer id from metadata, falling back to the Stripe customer id"""
    metadata = intent.get("metadata") or {}
    customer_id = metadata.get("customer_id")
    if customer_id and str(customer_id).isdigit():
        customer = db.query(Customer).filter(Customer.id == int(customer_id)).first()
        if customer:
            return customer

    if intent.get("customer"):
        return db.query(Customer).filter(Customer.stripe_customer_id == intent["customer"]).first()
    return None


def _created_at(intent: dict[str, Any]) -> datetime:
    if intent.get("created"):
        return datetime.fromtimestamp(intent["created"], tz=timezone.utc).replace(tzinfo=None)
    return datetime.utcnow()


def record_payment_intent(db: Session, intent: dict[str, Any], status: str) -> Optional[Payment]:
    """
    Upsert the Payment for a payment intent.

    Redeliveries are idempotent: a payment already marked paid is left alone.
    A failed attempt that later succeeds is flipped to paid.
    """
    intent_id = intent.get("id")
    if not intent_id:
        logger.warning("⚠️ No payment intent ID in webhook payload")
        return None

    customer = _find_customer(db, intent)
    if not customer:
        logger.warning(f"⚠️ No customer found for payment intent {intent_id}")
        return None

    payment = db.query(Payment).filter(Payment.stripe_payment_intent_id == intent_id).first()
    if payment and payment.status == "paid":
        logger.info(f"ℹ️ Payment intent {intent_id} already recorded as payment {payment.id}")
        return payment

    if not payment:
        metadata = intent.get("metadata") or {}
        service_id = metadata.get("service_id")
        payment = Payment(
            customer_id=customer.id,
            service_id=int(service_id) if service_id and str(service_id).isdigit() else None,
            type=metadata.get("type") or "subscription",
            payment_method="stripe",
            stripe_payment_intent_id=intent_id,
        )
        db.add(payment)

    payment.amount = from_cents(intent.get("amount", 0))
    payment.currency = (intent.get("currency") or "usd").upper()
    payment.status = status
    if status == "paid":
        payment.paid_at = _created_at(intent)

    db.commit()
    db.refresh(payment)
    if status == "paid":
        logger.info(f"✅ Payment {payment.id} recorded for customer {customer.id}: ${payment.amount:.2f}")
    else:
        logger.warning(f"⚠️ Payment {payment.id} failed for customer {customer.id}: ${payment.amount:.2f}")
    return payment


@router.post("")
async def handle_stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Handle Stripe webhook events

    Events handled:
    - payment_intent.succeeded - customer charge collected
    - payment_intent.payment_failed - customer charge declined
    """
    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured, rejecting webhook")
        raise HTTPException(status_code=503, detail="Stripe webhooks are not configured")

    try:
        body = await verify_stripe_webhook(request, config.STRIPE_WEBHOOK_SECRET)

        try:
            event = json.loads(body.decode("utf-8"))
        except ValueError:
            logger.error("❌ Invalid JSON payload")
            raise HTTPException(status_code=400, detail="Invalid JSON") from None

        event_type = event.get("type")
        logger.info(f"📥 Received Stripe webhook: {event_type} ({event.get('id')})")

        status = PAYMENT_STATUS_BY_EVENT.get(event_type)
        if status is None:
            logger.info(f"ℹ️ Unhandled event type: {event_type}")
            return {"status": "ignored", "event_type": event_type}

        intent = (event.get("data") or {}).get("object") or {}
        payment = record_payment_intent(db, intent, status)
        return {
            "status": "success",
            "event_type": event_type,
            "payment_id": payment.id if payment else None,
        }

    except HTTPException:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Webhook processing error: {str(e)}")
        raise HTTPException(status_code=500, detail="Webhook processing failed") from e
