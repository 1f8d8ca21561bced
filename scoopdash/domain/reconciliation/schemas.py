"""Reconciliation domain schemas"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, model_validator


class ReconciliationItemResponse(BaseModel):
    id: int
    record_type: str
    payment_id: Optional[int] = None
    payout_id: Optional[int] = None
    referral_id: Optional[int] = None
    stripe_id: Optional[str] = None
    system_amount: Optional[float] = None
    stripe_amount: Optional[float] = None
    match_status: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ReconciliationReportSummary(BaseModel):
    id: int
    period_start: datetime
    period_end: datetime
    total_records: int
    matched_count: int
    mismatch_count: int
    missing_from_stripe_count: int
    missing_from_system_count: int
    discrepancy_count: int
    customer_payments_total: float
    employee_payouts_total: float
    net_revenue: float
    trigger: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReconciliationReportDetail(ReconciliationReportSummary):
    internal_checks: list[dict[str, Any]] = []
    items: list[ReconciliationItemResponse] = []


class ReconciliationRunRequest(BaseModel):
    """Optional explicit period for a manual run (defaults to the trailing week)"""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start and self.end and self.start >= self.end:
            raise ValueError("start must be before end")
        return self
