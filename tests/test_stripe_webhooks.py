"""Stripe webhook ingestion of customer payments"""

import json
import time
from datetime import timedelta, timezone

from scoopdash.models import Payment
from scoopdash.webhook_security import create_stripe_signature, parse_stripe_signature

from .conftest import DEFAULT_NOW, auth_headers

SECRET = "whsec_test"
YESTERDAY = DEFAULT_NOW - timedelta(days=1)
YESTERDAY_TS = int(YESTERDAY.replace(tzinfo=timezone.utc).timestamp())


def _event(event_type, intent):
    return {"id": "evt_1", "type": event_type, "data": {"object": intent}}


def _intent(customer, /, intent_id="pi_1", cents=4999, **fields):
    intent = {
        "id": intent_id,
        "amount": cents,
        "currency": "usd",
        "created": YESTERDAY_TS,
        "metadata": {"customer_id": str(customer.id)},
    }
    intent.update(fields)
    return intent


def _post(client, event, secret=SECRET, timestamp=None):
    body = json.dumps(event).encode("utf-8")
    return client.post(
        "/webhooks/stripe",
        content=body,
        headers={
            "Content-Type": "application/json",
            "Stripe-Signature": create_stripe_signature(secret, body, timestamp),
        },
    )


def test_parse_stripe_signature():
    assert parse_stripe_signature("t=123, v1=abc,v0=old,v1=def") == ("123", ["abc", "def"])
    assert parse_stripe_signature("garbage") == (None, [])


def test_succeeded_intent_records_paid_payment(client, db_session, make_customer):
    customer = make_customer()

    response = _post(client, _event("payment_intent.succeeded", _intent(customer)))

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["event_type"] == "payment_intent.succeeded"
    payment = db_session.query(Payment).filter(Payment.id == body["payment_id"]).one()
    assert payment.customer_id == customer.id
    assert payment.amount == 49.99
    assert payment.currency == "USD"
    assert payment.status == "paid"
    assert payment.stripe_payment_intent_id == "pi_1"
    assert payment.paid_at == YESTERDAY


def test_matches_customer_by_stripe_customer_id(client, db_session, make_customer):
    customer = make_customer(stripe_customer_id="cus_42")
    intent = _intent(customer, metadata={}, customer="cus_42")

    payment_id = _post(client, _event("payment_intent.succeeded", intent)).json()["payment_id"]

    assert db_session.query(Payment).filter(Payment.id == payment_id).one().customer_id == customer.id


def test_redelivery_is_idempotent(client, db_session, make_customer):
    customer = make_customer()
    event = _event("payment_intent.succeeded", _intent(customer))

    first = _post(client, event).json()["payment_id"]
    second = _post(client, event).json()["payment_id"]

    assert first == second
    assert db_session.query(Payment).count() == 1


def test_failed_then_succeeded_intent(client, db_session, make_customer):
    customer = make_customer()

    _post(client, _event("payment_intent.payment_failed", _intent(customer)))
    payment = db_session.query(Payment).one()
    assert payment.status == "failed"
    assert payment.paid_at is None

    _post(client, _event("payment_intent.succeeded", _intent(customer)))
    db_session.refresh(payment)
    assert payment.status == "paid"
    assert payment.paid_at == YESTERDAY
    assert db_session.query(Payment).count() == 1


def test_unknown_customer_is_acknowledged(client, db_session, make_customer):
    customer = make_customer()
    intent = _intent(customer, metadata={"customer_id": "999"})

    response = _post(client, _event("payment_intent.succeeded", intent))

    assert response.status_code == 200
    assert response.json()["payment_id"] is None
    assert db_session.query(Payment).count() == 0


def test_unhandled_event_is_ignored(client, db_session):
    response = _post(client, {"id": "evt_2", "type": "customer.created", "data": {"object": {}}})

    assert response.status_code == 200
    assert response.json() == {"status": "ignored", "event_type": "customer.created"}


def test_rejects_bad_signatures(client, db_session, make_customer):
    customer = make_customer()
    event = _event("payment_intent.succeeded", _intent(customer))

    assert _post(client, event, secret="whsec_wrong").status_code == 401
    assert _post(client, event, timestamp=int(time.time()) - 3600).status_code == 401

    unsigned = client.post("/webhooks/stripe", content=json.dumps(event).encode("utf-8"))
    assert unsigned.status_code == 401

    signed = create_stripe_signature(SECRET, b'{"type": "other"}')
    tampered = client.post(
        "/webhooks/stripe",
        content=json.dumps(event).encode("utf-8"),
        headers={"Stripe-Signature": signed},
    )
    assert tampered.status_code == 401
    assert db_session.query(Payment).count() == 0


def test_invalid_json_is_rejected(client, db_session):
    body = b"not json"
    response = client.post(
        "/webhooks/stripe",
        content=body,
        headers={"Stripe-Signature": create_stripe_signature(SECRET, body)},
    )
    assert response.status_code == 400


def test_unconfigured_secret_returns_503(client, db_session, monkeypatch):
    monkeypatch.setattr("scoopdash.config.STRIPE_WEBHOOK_SECRET", None)

    response = _post(client, {"id": "evt_3", "type": "payment_intent.succeeded", "data": {"object": {}}})

    assert response.status_code == 503


def test_ingested_payment_reconciles(client, make_user, make_customer, mock_stripe):
    admin = make_user("admin")
    customer = make_customer()
    _post(client, _event("payment_intent.succeeded", _intent(customer)))
    mock_stripe.list_payment_intents.return_value = [{"id": "pi_1", "amount": 4999, "status": "succeeded"}]

    body = client.post("/admin/reconciliation/run", headers=auth_headers(admin)).json()

    assert body["discrepancy_count"] == 0
    assert body["items"][0]["record_type"] == "payment"
    assert body["items"][0]["stripe_id"] == "pi_1"
