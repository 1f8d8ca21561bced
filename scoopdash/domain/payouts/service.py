"""Payout service - Employee payouts over the Stripe and Cash App rails"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Earning, Employee, Payout, Service
from ...services.job_automation import Clock, utcnow
from ...services.notification_service import create_notification, notify_admins
from ...services.payout_calculator import (
    FLAT_FEE,
    PERCENT_FEE,
    PayoutQuote,
    PayoutRail,
    calculate_payout,
)
from ...services.stripe_service import StripeError, StripeService
from .repository import PayoutRepository

logger = logging.getLogger(__name__)


def serialize_payout(payout: Payout) -> dict:
    return {
        "id": payout.id,
        "amount": payout.amount,
        "fees": payout.fees or 0,
        "net_amount": payout.net_amount,
        "currency": payout.currency or "USD",
        "status": payout.status,
        "payment_method": payout.payment_method,
        "is_same_day": bool(payout.is_same_day),
        "service_ids": payout.service_ids or [],
        "service_count": payout.service_count or 0,
        "stripe_transfer_id": payout.stripe_transfer_id,
        "reference_id": payout.reference_id,
        "failure_reason": payout.failure_reason,
        "requested_at": payout.requested_at,
        "processed_at": payout.processed_at,
        "completed_at": payout.completed_at,
    }


def serialize_quote(quote: PayoutQuote) -> dict:
    return {
        "payment_method": quote.rail,
        "gross_amount": float(quote.gross),
        "fee": float(quote.fee),
        "net_amount": float(quote.net),
        "service_count": quote.service_count,
        "is_same_day": quote.is_same_day,
    }


class PayoutService:
    """Service layer for payout business logic"""

    def __init__(self, db: Session, stripe: StripeService, clock: Clock = utcnow):
        self.db = db
        self.stripe = stripe
        self.clock = clock
        self.repo = PayoutRepository()

    def get_summary(self, employee: Employee) -> dict:
        payable = self.repo.get_payable_services(self.db, employee.id)
        last = self.repo.get_last_completed(self.db, employee.id)
        return {
            "available_balance": round(sum(s.potential_earnings or 0 for s in payable), 2),
            "available_service_count": len(payable),
            "pending_payout_total": round(
                self.repo.sum_net(self.db, employee.id, ("pending", "processing")), 2
            ),
            "total_paid_out": round(self.repo.sum_net(self.db, employee.id, ("completed",)), 2),
            "last_payout_at": last.completed_at if last else None,
            "has_stripe_account": bool(employee.stripe_connect_account_id),
            "has_cash_app": bool(employee.cash_app_username),
            "fee_schedule": [
                {
                    "payment_method": rail,
                    "flat_fee": float(FLAT_FEE),
                    "percent_fee": float(PERCENT_FEE[rail] * 100),
                    "is_same_day": rail == PayoutRail.CASH_APP,
                }
                for rail in PayoutRail
            ],
        }

    def get_available_services(self, employee: Employee) -> list[dict]:
        return [
            {
                "id": s.id,
                "service_type": s.service_type,
                "scheduled_date": s.scheduled_date,
                "completed_at": s.completed_at,
                "amount": s.potential_earnings or 0,
                "customer_name": s.customer.user.full_name if s.customer and s.customer.user else None,
            }
            for s in self.repo.get_payable_services(self.db, employee.id)
        ]

    def _select_services(self, employee: Employee, service_ids: list[int]) -> list[Service]:
        if not service_ids:
            raise HTTPException(status_code=400, detail="No services selected for payout")

        services = self.repo.get_payable_services(self.db, employee.id, service_ids)
        if len(services) != len(set(service_ids)):
            raise HTTPException(
                status_code=400,
                detail="Some services are not found, not completed, already paid, or don't belong to you",
            )
        return services

    def quote(self, employee: Employee, service_ids: list[int], rail: PayoutRail) -> dict:
        services = self._select_services(employee, service_ids)
        quote = calculate_payout([s.potential_earnings for s in services], rail)
        return serialize_quote(quote)

    def _check_rail(self, employee: Employee, rail: PayoutRail) -> None:
        if rail == PayoutRail.STRIPE and not employee.stripe_connect_account_id:
            raise HTTPException(
                status_code=400, detail="Connect a Stripe account before requesting direct deposit"
            )
        if rail == PayoutRail.CASH_APP and not employee.cash_app_username:
            raise HTTPException(
                status_code=400, detail="Add your Cash App $cashtag before requesting a same-day payout"
            )

    async def request_payout(
        self, employee: Employee, service_ids: list[int], rail: PayoutRail
    ) -> dict:
        """
        Create a payout for the selected services and dispatch it on the chosen rail

        Stripe payouts transfer immediately to the employee's connected account.
        Cash App payouts are queued as processing until an admin sends them.
        """
        rail = PayoutRail(rail)
        self._check_rail(employee, rail)
        services = self._select_services(employee, service_ids)

        quote = calculate_payout([s.potential_earnings for s in services], rail)
        if quote.net <= 0:
            raise HTTPException(
                status_code=400,
                detail=f"Payout of ${quote.gross} does not cover the ${quote.fee} fee",
            )

        payout = self.repo.create_payout(
            self.db,
            services,
            employee_id=employee.id,
            amount=float(quote.gross),
            fees=float(quote.fee),
            net_amount=float(quote.net),
            currency="USD",
            status="pending",
            payment_method=rail.value,
            is_same_day=quote.is_same_day,
            service_ids=[s.id for s in services],
            service_count=quote.service_count,
        )
        if payout is None:
            logger.warning(f"⚠️ Employee {employee.id} lost a payout race for services {service_ids}")
            raise HTTPException(
                status_code=409, detail="Some of these services are already part of another payout"
            )
        logger.info(
            f"💸 Payout {payout.id} requested by employee {employee.id}: "
            f"${quote.gross} gross, ${quote.fee} fee, ${quote.net} net via {rail.value}"
        )

        if rail == PayoutRail.CASH_APP:
            return self._queue_cash_app(payout, employee)
        return await self._send_stripe_transfer(payout, employee)

    def _queue_cash_app(self, payout: Payout, employee: Employee) -> dict:
        payout.status = "processing"
        payout.processed_at = self.clock()
        notify_admins(
            self.db,
            "cash_app_payout_requested",
            "Same-day payout requested",
            f"Send ${payout.net_amount:.2f} to {employee.cash_app_username} (payout #{payout.id}).",
            {"payout_id": payout.id, "employee_id": employee.id},
        )
        self.db.commit()
        self.db.refresh(payout)
        return serialize_payout(payout)

    async def _send_stripe_transfer(self, payout: Payout, employee: Employee) -> dict:
        try:
            transfer = await self.stripe.create_transfer(
                amount=payout.net_amount,
                destination=employee.stripe_connect_account_id,
                description=f"Payout #{payout.id} for {payout.service_count} service(s)",
                metadata={"payout_id": payout.id, "employee_id": employee.id},
                idempotency_key=f"payout-{payout.id}",
            )
        except StripeError as e:
            self._mark_failed(payout, str(e))
            raise HTTPException(status_code=400, detail=f"Payout failed: {e}") from e

        self._mark_completed(payout, stripe_transfer_id=transfer.get("id"))
        return serialize_payout(payout)

    def _mark_failed(self, payout: Payout, reason: str) -> None:
        """Release the reserved services so they can be paid out again"""
        payout.status = "failed"
        payout.failure_reason = reason
        payout.processed_at = self.clock()
        for service in self.repo.get_payout_services(self.db, payout):
            service.payout_id = None
        self.db.commit()
        logger.error(f"❌ Payout {payout.id} failed: {reason}")

    def _mark_completed(
        self,
        payout: Payout,
        stripe_transfer_id: Optional[str] = None,
        reference_id: Optional[str] = None,
    ) -> None:
        now = self.clock()
        payout.status = "completed"
        payout.processed_at = payout.processed_at or now
        payout.completed_at = now
        if stripe_transfer_id:
            payout.stripe_transfer_id = stripe_transfer_id
        if reference_id:
            payout.reference_id = reference_id

        for service in self.repo.get_payout_services(self.db, payout):
            service.payment_status = "paid"
            service.paid_at = now
            self.db.add(
                Earning(
                    employee_id=payout.employee_id,
                    service_id=service.id,
                    payout_id=payout.id,
                    amount=service.potential_earnings or 0,
                    status="paid",
                    paid_at=now,
                )
            )

        employee = payout.employee
        create_notification(
            self.db,
            employee.user_id,
            "payout_completed",
            "Payout sent",
            f"${payout.net_amount:.2f} is on its way via {payout.payment_method.replace('_', ' ')}.",
            {"payout_id": payout.id},
        )
        self.db.commit()
        self.db.refresh(payout)
        logger.info(f"✅ Payout {payout.id} completed (${payout.net_amount:.2f})")

    def _get_processing_cash_app_payout(self, payout_id: int, action: str) -> Payout:
        payout = self.repo.get_payout(self.db, payout_id)
        if not payout:
            raise HTTPException(status_code=404, detail="Payout not found")
        if payout.payment_method != PayoutRail.CASH_APP.value:
            raise HTTPException(status_code=400, detail=f"Only Cash App payouts are {action} manually")
        if payout.status != "processing":
            raise HTTPException(
                status_code=400, detail=f"Payout cannot be {action} (status: {payout.status})"
            )
        return payout

    def complete_cash_app_payout(self, payout_id: int, reference_id: str) -> dict:
        """Admin confirms a same-day Cash App payout has been sent"""
        payout = self._get_processing_cash_app_payout(payout_id, "completed")
        self._mark_completed(payout, reference_id=reference_id)
        return serialize_payout(payout)

    def fail_cash_app_payout(self, payout_id: int, reason: str) -> dict:
        """Admin gives up on a Cash App payout; its services become payable again"""
        payout = self._get_processing_cash_app_payout(payout_id, "failed")
        self._mark_failed(payout, reason)
        create_notification(
            self.db,
            payout.employee.user_id,
            "payout_failed",
            "Payout could not be sent",
            f"Your ${payout.net_amount:.2f} Cash App payout was not sent: {reason}. "
            "The services are available to pay out again.",
            {"payout_id": payout.id},
        )
        self.db.commit()
        self.db.refresh(payout)
        return serialize_payout(payout)

    def get_history(self, employee: Employee, status: Optional[str] = None) -> list[dict]:
        return [serialize_payout(p) for p in self.repo.get_payouts(self.db, employee.id, status)]
