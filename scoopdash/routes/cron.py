"""
Cron-triggered endpoints

External schedulers call these with `Authorization: Bearer <CRON_SECRET>`.
The arq worker runs the same operations on its own schedule.
"""

import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..domain.reconciliation.router import get_reconciliation_service, run_reconciliation
from ..domain.reconciliation.schemas import ReconciliationReportSummary
from ..domain.reconciliation.service import ReconciliationService
from ..services.job_automation import Clock, get_clock, unlock_todays_jobs

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


class UnlockResult(BaseModel):
    unlocked: int
    skipped: bool
    local_time: str


async def verify_cron_secret(authorization: Optional[str] = Header(None)) -> None:
    if not config.CRON_SECRET:
        logger.error("❌ CRON_SECRET not configured, rejecting cron request")
        raise HTTPException(status_code=503, detail="Cron endpoints are not configured")

    expected = f"Bearer {config.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        logger.warning("⚠️ Cron request with invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post(
    "/payment-reconciliation",
    response_model=ReconciliationReportSummary,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_payment_reconciliation(
    service: ReconciliationService = Depends(get_reconciliation_service),
):
    """Weekly reconciliation of payments and payouts against Stripe"""
    return await run_reconciliation(service, trigger="cron")


@router.post(
    "/unlock-jobs",
    response_model=UnlockResult,
    dependencies=[Depends(verify_cron_secret)],
)
async def cron_unlock_jobs(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Unlock today's jobs once the unlock hour has passed"""
    try:
        return unlock_todays_jobs(db, clock())
    except Exception as e:
        logger.error(f"❌ Cron job unlock failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to unlock jobs") from e
