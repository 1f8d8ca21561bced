"""Reconciliation router - Admin access to payment reconciliation reports"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import User
from ...services.job_automation import Clock, get_clock
from ...services.stripe_service import StripeError, StripeService, get_stripe_service
from .schemas import (
    ReconciliationReportDetail,
    ReconciliationReportSummary,
    ReconciliationRunRequest,
)
from .service import ReconciliationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/reconciliation", tags=["Admin"])


def get_reconciliation_service(
    db: Session = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service),
    clock: Clock = Depends(get_clock),
) -> ReconciliationService:
    """Dependency injection for ReconciliationService"""
    return ReconciliationService(db, stripe, clock)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def run_reconciliation(
    service: ReconciliationService,
    trigger: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
):
    """Run a report, mapping Stripe outages to 502"""
    try:
        report = await service.run(trigger=trigger, start=_naive_utc(start), end=_naive_utc(end))
        return ReconciliationReportDetail.model_validate(report)
    except StripeError as e:
        logger.error(f"❌ Reconciliation aborted, Stripe unavailable: {e}")
        raise HTTPException(status_code=502, detail=f"Failed to fetch Stripe records: {e}") from e
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Reconciliation failed: {e}")
        raise HTTPException(status_code=500, detail="Payment reconciliation failed") from e


@router.get("/reports", response_model=list[ReconciliationReportSummary])
async def list_reports(
    limit: int = Query(20, ge=1, le=100),
    admin: User = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    return service.list_reports(limit)


@router.get("/reports/{report_id}", response_model=ReconciliationReportDetail)
async def get_report(
    report_id: int,
    admin: User = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    return ReconciliationReportDetail.model_validate(service.get_report(report_id))


@router.post("/run", response_model=ReconciliationReportDetail)
async def run_manual_reconciliation(
    data: Optional[ReconciliationRunRequest] = None,
    admin: User = Depends(get_current_admin),
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Run reconciliation now, for the trailing week or an explicit period"""
    logger.info(f"🔄 Manual reconciliation triggered by {admin.email}")
    return await run_reconciliation(
        service,
        trigger="manual",
        start=data.start if data else None,
        end=data.end if data else None,
    )
