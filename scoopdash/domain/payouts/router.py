"""Payout router - Employee payout endpoints and admin settlement of Cash App payouts"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ...auth import get_current_admin, get_current_employee
from ...database import get_db
from ...models import Employee, User
from ...rate_limiter import create_rate_limiter
from ...services.job_automation import Clock, get_clock
from ...services.stripe_service import StripeService, get_stripe_service
from .schemas import (
    AvailableService,
    CompletePayoutRequest,
    FailPayoutRequest,
    PayoutQuoteResponse,
    PayoutResponse,
    PayoutSelection,
    PayoutSummary,
)
from .service import PayoutService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payouts", tags=["Payouts"])
admin_router = APIRouter(prefix="/admin/payouts", tags=["Admin"])

rate_limit_payouts = create_rate_limiter(limit=5, window_seconds=300, key_prefix="payout_request")


def get_payout_service(
    db: Session = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service),
    clock: Clock = Depends(get_clock),
) -> PayoutService:
    """Dependency injection for PayoutService"""
    return PayoutService(db, stripe, clock)


@router.get("/summary", response_model=PayoutSummary)
async def get_payout_summary(
    employee: Employee = Depends(get_current_employee),
    service: PayoutService = Depends(get_payout_service),
):
    """Balances available for payout, pending and already paid"""
    return service.get_summary(employee)


@router.get("/available-services", response_model=list[AvailableService])
async def get_available_services(
    employee: Employee = Depends(get_current_employee),
    service: PayoutService = Depends(get_payout_service),
):
    """Completed services that have not been paid out yet"""
    return service.get_available_services(employee)


@router.post("/quote", response_model=PayoutQuoteResponse)
async def quote_payout(
    data: PayoutSelection,
    employee: Employee = Depends(get_current_employee),
    service: PayoutService = Depends(get_payout_service),
):
    """Preview gross, fee and net for a selection without creating anything"""
    return service.quote(employee, data.service_ids, data.payment_method)


@router.post("/request", response_model=PayoutResponse)
async def request_payout(
    data: PayoutSelection,
    employee: Employee = Depends(get_current_employee),
    service: PayoutService = Depends(get_payout_service),
    _: None = Depends(rate_limit_payouts),
):
    try:
        return await service.request_payout(employee, data.service_ids, data.payment_method)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Payout request failed for employee {employee.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to process payout request") from e


@router.get("/history", response_model=list[PayoutResponse])
async def get_payout_history(
    status: Optional[str] = None,
    employee: Employee = Depends(get_current_employee),
    service: PayoutService = Depends(get_payout_service),
):
    return service.get_history(employee, status)


@admin_router.post("/{payout_id}/complete", response_model=PayoutResponse)
async def complete_payout(
    payout_id: int,
    data: CompletePayoutRequest,
    admin: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    """Mark a same-day Cash App payout as sent"""
    logger.info(f"🔄 Admin {admin.email} completing payout {payout_id}")
    return service.complete_cash_app_payout(payout_id, data.reference_id)


@admin_router.post("/{payout_id}/fail", response_model=PayoutResponse)
async def fail_payout(
    payout_id: int,
    data: FailPayoutRequest,
    admin: User = Depends(get_current_admin),
    service: PayoutService = Depends(get_payout_service),
):
    """Mark a Cash App payout as not sent and release its services"""
    logger.info(f"🔄 Admin {admin.email} failing payout {payout_id}: {data.reason}")
    return service.fail_cash_app_payout(payout_id, data.reason)
