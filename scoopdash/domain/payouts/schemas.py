"""Payout domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...services.payout_calculator import PayoutRail


class PayoutSelection(BaseModel):
    """Completed, unpaid services to pay out and the rail to use"""

    service_ids: list[int] = Field(..., min_length=1)
    payment_method: PayoutRail = PayoutRail.STRIPE

    @field_validator("service_ids")
    @classmethod
    def unique_ids(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Duplicate service IDs in payout selection")
        return v


class PayoutQuoteResponse(BaseModel):
    payment_method: PayoutRail
    gross_amount: float
    fee: float
    net_amount: float
    service_count: int
    is_same_day: bool


class AvailableService(BaseModel):
    id: int
    service_type: Optional[str] = None
    scheduled_date: datetime
    completed_at: Optional[datetime] = None
    amount: float
    customer_name: Optional[str] = None


class FeeSchedule(BaseModel):
    payment_method: PayoutRail
    flat_fee: float
    percent_fee: float
    is_same_day: bool


class PayoutSummary(BaseModel):
    available_balance: float
    available_service_count: int
    pending_payout_total: float
    total_paid_out: float
    last_payout_at: Optional[datetime] = None
    has_stripe_account: bool
    has_cash_app: bool
    fee_schedule: list[FeeSchedule]
    currency: str = "USD"


class PayoutResponse(BaseModel):
    id: int
    amount: float
    fees: float
    net_amount: float
    currency: str
    status: str
    payment_method: str
    is_same_day: bool
    service_ids: list[int]
    service_count: int
    stripe_transfer_id: Optional[str] = None
    reference_id: Optional[str] = None
    failure_reason: Optional[str] = None
    requested_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class CompletePayoutRequest(BaseModel):
    reference_id: str = Field(..., min_length=1, max_length=255)


class FailPayoutRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
