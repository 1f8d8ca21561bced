"""
Admin dashboard stats
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import get_current_admin
from ..database import get_db
from ..models import Customer, Employee, Payment, Payout, Referral, Service, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class AdminStats(BaseModel):
    services_by_status: dict[str, int]
    total_services: int
    employee_count: int
    customer_count: int
    total_customer_payments: float
    total_payouts: float
    pending_cash_app_payouts: int
    converted_referrals: int


@router.get("/stats", response_model=AdminStats)
async def get_admin_stats(
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    try:
        by_status = dict(
            db.query(Service.status, func.count(Service.id)).group_by(Service.status).all()
        )
        return AdminStats(
            services_by_status=by_status,
            total_services=sum(by_status.values()),
            employee_count=db.query(Employee).count(),
            customer_count=db.query(Customer).count(),
            total_customer_payments=round(
                db.query(func.sum(Payment.amount)).filter(Payment.status == "paid").scalar() or 0, 2
            ),
            total_payouts=round(
                db.query(func.sum(Payout.net_amount)).filter(Payout.status == "completed").scalar()
                or 0,
                2,
            ),
            pending_cash_app_payouts=db.query(Payout)
            .filter(Payout.payment_method == "cash_app", Payout.status == "processing")
            .count(),
            converted_referrals=db.query(Referral).filter(Referral.status == "converted").count(),
        )
    except Exception as e:
        logger.error(f"❌ Failed to load admin stats: {e}")
        raise HTTPException(status_code=500, detail="Failed to load stats") from e
