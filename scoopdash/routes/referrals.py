"""
Referral program

Any customer or employee can refer a friend by email. When that email
registers the referral converts, and an admin pays the commission to an
employee referrer's connected Stripe account.
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session, joinedload

from ..auth import get_current_admin, require_role
from ..config import REFERRAL_COMMISSION
from ..database import get_db
from ..models import Referral, User
from ..services.job_automation import Clock, get_clock
from ..services.notification_service import create_notification
from ..services.stripe_service import StripeError, StripeService, get_stripe_service
from ..shared.validators import validate_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/referrals", tags=["Referrals"])
admin_router = APIRouter(prefix="/admin/referrals", tags=["Admin"])


class ReferralCreate(BaseModel):
    email: str
    name: Optional[str] = Field(None, max_length=255)
    type: Literal["customer", "scooper"] = "customer"

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)


class ReferralResponse(BaseModel):
    id: int
    referrer_user_id: int
    referrer_name: Optional[str] = None
    referred_email: str
    referred_name: Optional[str] = None
    type: str
    status: str
    commission_amount: float
    stripe_transfer_id: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


class ReferralList(BaseModel):
    referrals: list[ReferralResponse]
    total_earned: float
    total_pending: float


def _referral_response(referral: Referral) -> ReferralResponse:
    return ReferralResponse(
        id=referral.id,
        referrer_user_id=referral.referrer_user_id,
        referrer_name=referral.referrer.full_name if referral.referrer else None,
        referred_email=referral.referred_email,
        referred_name=referral.referred_name,
        type=referral.type,
        status=referral.status,
        commission_amount=referral.commission_amount or 0,
        stripe_transfer_id=referral.stripe_transfer_id,
        failure_reason=referral.failure_reason,
        created_at=referral.created_at,
        converted_at=referral.converted_at,
        paid_at=referral.paid_at,
    )


@router.post("", response_model=ReferralResponse, status_code=201)
async def create_referral(
    data: ReferralCreate,
    user: User = Depends(require_role("customer", "employee")),
    db: Session = Depends(get_db),
):
    if data.email == user.email:
        raise HTTPException(status_code=400, detail="You cannot refer yourself")
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=400, detail="This person already has an account")

    existing = (
        db.query(Referral)
        .filter(Referral.referred_email == data.email, Referral.status == "pending")
        .first()
    )
    if existing:
        raise HTTPException(status_code=400, detail="This email has already been referred")

    referral = Referral(
        referrer_user_id=user.id,
        referred_email=data.email,
        referred_name=data.name,
        type=data.type,
        status="pending",
        commission_amount=REFERRAL_COMMISSION,
    )
    db.add(referral)
    db.commit()
    db.refresh(referral)
    logger.info(f"✅ Referral {referral.id} created by user {user.id} for {data.email}")
    return _referral_response(referral)


@router.get("", response_model=ReferralList)
async def list_my_referrals(
    user: User = Depends(require_role("customer", "employee")),
    db: Session = Depends(get_db),
):
    referrals = (
        db.query(Referral)
        .filter(Referral.referrer_user_id == user.id)
        .order_by(Referral.created_at.desc(), Referral.id.desc())
        .all()
    )
    return ReferralList(
        referrals=[_referral_response(r) for r in referrals],
        total_earned=sum(r.commission_amount or 0 for r in referrals if r.status == "paid"),
        total_pending=sum(r.commission_amount or 0 for r in referrals if r.status == "converted"),
    )


@admin_router.get("", response_model=list[ReferralResponse])
async def admin_list_referrals(
    status: Optional[str] = None,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Referral).options(joinedload(Referral.referrer))
    if status:
        query = query.filter(Referral.status == status)
    return [_referral_response(r) for r in query.order_by(Referral.id.desc()).all()]


@admin_router.post("/{referral_id}/pay", response_model=ReferralResponse)
async def pay_referral(
    referral_id: int,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
    stripe: StripeService = Depends(get_stripe_service),
    clock: Clock = Depends(get_clock),
):
    """Transfer a converted referral's commission to the referrer's Stripe account"""
    referral = (
        db.query(Referral)
        .options(joinedload(Referral.referrer).joinedload(User.employee))
        .filter(Referral.id == referral_id)
        .first()
    )
    if not referral:
        raise HTTPException(status_code=404, detail="Referral not found")
    if referral.status != "converted":
        raise HTTPException(
            status_code=400, detail=f"Only converted referrals can be paid (status: {referral.status})"
        )

    employee = referral.referrer.employee if referral.referrer else None
    if not employee or not employee.stripe_connect_account_id:
        raise HTTPException(status_code=400, detail="Referrer does not have a Stripe account set up")

    try:
        transfer = await stripe.create_transfer(
            amount=referral.commission_amount,
            destination=employee.stripe_connect_account_id,
            description=f"Referral commission for {referral.referred_name or referral.referred_email}",
            metadata={"referral_id": referral.id, "type": referral.type},
            idempotency_key=f"referral-{referral.id}",
        )
    except StripeError as e:
        referral.status = "failed"
        referral.failure_reason = str(e)
        db.commit()
        logger.error(f"❌ Referral {referral.id} payment failed: {e}")
        raise HTTPException(status_code=400, detail=f"Payment processing failed: {e}") from e

    referral.status = "paid"
    referral.paid_at = clock()
    referral.stripe_transfer_id = transfer.get("id")
    create_notification(
        db,
        referral.referrer_user_id,
        "referral_paid",
        "Referral bonus paid",
        f"${referral.commission_amount:.2f} for referring "
        f"{referral.referred_name or referral.referred_email} is on its way.",
        {"referral_id": referral.id},
    )
    db.commit()
    db.refresh(referral)
    logger.info(f"✅ Admin {admin.email} paid referral {referral.id} ({transfer.get('id')})")
    return _referral_response(referral)
