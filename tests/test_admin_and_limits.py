"""Admin stats, rate limiting and the health endpoints"""

from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from starlette.requests import Request

from scoopdash import rate_limiter
from scoopdash.models import Payment, Payout

from .conftest import TODAY_9AM, auth_headers


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200


def test_admin_stats(client, db_session, make_user, make_employee, make_customer, make_job):
    admin = make_user("admin")
    employee = make_employee()
    customer = make_customer()
    make_job(customer)
    make_job(customer, employee_id=employee.id, status="completed")
    db_session.add_all(
        [
            Payment(customer_id=customer.id, amount=49.99, status="paid", paid_at=TODAY_9AM),
            Payment(customer_id=customer.id, amount=10.0, status="failed"),
            Payout(
                employee_id=employee.id,
                amount=20,
                fees=0.55,
                net_amount=19.45,
                status="processing",
                payment_method="cash_app",
            ),
        ]
    )
    db_session.commit()

    response = client.get("/admin/stats", headers=auth_headers(admin))

    assert response.status_code == 200
    body = response.json()
    assert body["services_by_status"] == {"scheduled": 1, "completed": 1}
    assert body["total_services"] == 2
    assert body["employee_count"] == 1
    assert body["customer_count"] == 1
    assert body["total_customer_payments"] == 49.99
    assert body["total_payouts"] == 0
    assert body["pending_cash_app_payouts"] == 1


def test_admin_stats_forbidden_for_customers(client, make_customer):
    customer = make_customer()
    assert client.get("/admin/stats", headers=auth_headers(customer.user)).status_code == 403


def _redis_returning(count):
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [count, True]
    return client


def _request():
    return Request({"type": "http", "method": "POST", "path": "/", "headers": [], "client": ("10.0.0.1", 5000)})


def test_check_rate_limit_counts_requests():
    allowed, count, ttl = rate_limiter.check_rate_limit("job_claim:1.2.3.4", 5, 60, _redis_returning(5))
    assert allowed is True
    assert count == 5
    assert 0 < ttl <= 60

    allowed, _, _ = rate_limiter.check_rate_limit("job_claim:1.2.3.4", 5, 60, _redis_returning(6))
    assert allowed is False


@pytest.mark.asyncio
async def test_rate_limit_dependency_blocks_when_exceeded(monkeypatch):
    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", lambda: _redis_returning(31))

    with pytest.raises(HTTPException) as exc_info:
        await rate_limiter.rate_limit_dependency(_request(), 30, 60, "job_claim")

    assert exc_info.value.status_code == 429
    assert "Retry-After" in exc_info.value.headers


@pytest.mark.asyncio
async def test_rate_limit_fails_open_without_redis(monkeypatch):
    def unavailable():
        raise ConnectionError("redis down")

    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(rate_limiter, "get_redis_client", unavailable)

    assert await rate_limiter.rate_limit_dependency(_request(), 30, 60, "job_claim") is None


@pytest.mark.asyncio
async def test_rate_limit_disabled(monkeypatch):
    monkeypatch.setattr(rate_limiter, "get_redis_client", MagicMock(side_effect=AssertionError))
    assert await rate_limiter.rate_limit_dependency(_request(), 1, 60) is None
