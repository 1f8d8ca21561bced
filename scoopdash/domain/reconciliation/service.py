"""
Payment reconciliation

Compares what the database says was charged and paid out against what Stripe
actually recorded for the trailing week, and stores the result as a report.
Discrepancies are data, not errors: they are counted, itemised and sent to
admins as an alert.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional, Sequence

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Payment, Payout, ReconciliationItem, ReconciliationReport, Referral
from ...services.job_automation import Clock, utcnow
from ...services.notification_service import notify_admins
from ...services.stripe_service import StripeService, from_cents
from .repository import ReconciliationRepository

logger = logging.getLogger(__name__)

RECONCILIATION_WINDOW = timedelta(days=7)
AMOUNT_TOLERANCE = 0.01

MATCHED = "matched"
AMOUNT_MISMATCH = "amount_mismatch"
MISSING_FROM_STRIPE = "missing_from_stripe"
MISSING_FROM_SYSTEM = "missing_from_system"


def _compare(
    record_type: str,
    stripe_id: str,
    system_amount: float,
    stripe_record: Optional[dict[str, Any]],
    **ids,
) -> dict[str, Any]:
    item = {
        "record_type": record_type,
        "stripe_id": stripe_id,
        "system_amount": system_amount,
        "stripe_amount": None,
        "payment_id": ids.get("payment_id"),
        "payout_id": ids.get("payout_id"),
        "referral_id": ids.get("referral_id"),
    }
    if stripe_record is None:
        item["match_status"] = MISSING_FROM_STRIPE
        item["notes"] = f"{record_type.capitalize()} exists in system but not found in Stripe"
        return item

    stripe_amount = from_cents(stripe_record.get("amount", 0))
    item["stripe_amount"] = stripe_amount
    if abs(round(system_amount - stripe_amount, 2)) > AMOUNT_TOLERANCE:
        item["match_status"] = AMOUNT_MISMATCH
        item["notes"] = (
            f"Amount mismatch: system has ${system_amount:.2f}, Stripe has ${stripe_amount:.2f}"
        )
    else:
        item["match_status"] = MATCHED
        item["notes"] = f"{record_type.capitalize()} record matches Stripe"
    return item


def compare_records(
    payments: list[Payment],
    payouts: list[Payout],
    payment_intents: list[dict[str, Any]],
    transfers: list[dict[str, Any]],
    referrals: Sequence[Referral] = (),
) -> list[dict[str, Any]]:
    """
    Match system records to Stripe records by Stripe id.

    Payments are matched to payment intents on amount. Payouts (net amount)
    and paid referral commissions both leave as transfers and are matched
    against them. Stripe records with no system counterpart are reported as
    missing_from_system.
    """
    intents_by_id = {pi["id"]: pi for pi in payment_intents}
    transfers_by_id = {t["id"]: t for t in transfers}
    items: list[dict[str, Any]] = []

    for payment in payments:
        items.append(
            _compare(
                "payment",
                payment.stripe_payment_intent_id,
                payment.amount,
                intents_by_id.get(payment.stripe_payment_intent_id),
                payment_id=payment.id,
            )
        )

    for payout in payouts:
        items.append(
            _compare(
                "payout",
                payout.stripe_transfer_id,
                payout.net_amount,
                transfers_by_id.get(payout.stripe_transfer_id),
                payout_id=payout.id,
            )
        )

    for referral in referrals:
        items.append(
            _compare(
                "referral",
                referral.stripe_transfer_id,
                referral.commission_amount,
                transfers_by_id.get(referral.stripe_transfer_id),
                referral_id=referral.id,
            )
        )

    known_intents = {p.stripe_payment_intent_id for p in payments}
    for intent in payment_intents:
        if intent["id"] not in known_intents:
            items.append(
                {
                    "record_type": "payment",
                    "stripe_id": intent["id"],
                    "system_amount": None,
                    "stripe_amount": from_cents(intent.get("amount", 0)),
                    "match_status": MISSING_FROM_SYSTEM,
                    "notes": "Payment exists in Stripe but not in our system",
                }
            )

    known_transfers = {p.stripe_transfer_id for p in payouts}
    known_transfers.update(r.stripe_transfer_id for r in referrals)
    for transfer in transfers:
        if transfer["id"] not in known_transfers:
            items.append(
                {
                    "record_type": "payout",
                    "stripe_id": transfer["id"],
                    "system_amount": None,
                    "stripe_amount": from_cents(transfer.get("amount", 0)),
                    "match_status": MISSING_FROM_SYSTEM,
                    "notes": "Transfer exists in Stripe but not in our system",
                }
            )

    return items


class ReconciliationService:
    """Service layer for payment reconciliation reports"""

    def __init__(self, db: Session, stripe: StripeService, clock: Clock = utcnow):
        self.db = db
        self.stripe = stripe
        self.clock = clock
        self.repo = ReconciliationRepository()

    def _internal_checks(self, start: datetime, end: datetime) -> list[dict[str, Any]]:
        """Consistency checks between our own tables, reported but not counted"""
        checks = []

        payout_gross = round(
            self.repo.sum_completed_payouts(self.db, start, end, column=Payout.amount), 2
        )
        earnings = round(self.repo.sum_paid_earnings(self.db, start, end), 2)
        checks.append(
            {
                "check": "payouts_vs_earnings",
                "ok": abs(payout_gross - earnings) <= AMOUNT_TOLERANCE,
                "detail": f"Completed payouts ${payout_gross:.2f} vs paid earnings ${earnings:.2f}",
            }
        )

        failed = self.repo.get_failed_payments(self.db, start, end)
        checks.append(
            {
                "check": "failed_payments",
                "ok": not failed,
                "detail": f"{len(failed)} failed customer payment(s) totalling "
                f"${sum(p.amount or 0 for p in failed):.2f}",
            }
        )

        stale = self.repo.count_stale_unpaid_services(self.db, start)
        checks.append(
            {
                "check": "stale_unpaid_services",
                "ok": stale == 0,
                "detail": f"{stale} completed service(s) unpaid for more than a week",
            }
        )
        return checks

    async def run(
        self,
        trigger: str = "cron",
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ReconciliationReport:
        end = end or self.clock()
        start = start or end - RECONCILIATION_WINDOW
        logger.info(f"🔄 Starting payment reconciliation from {start.isoformat()} to {end.isoformat()}")

        payments = self.repo.get_stripe_payments(self.db, start, end)
        payouts = self.repo.get_stripe_payouts(self.db, start, end)
        referrals = self.repo.get_stripe_referrals(self.db, start, end)
        intents = await self.stripe.list_payment_intents(start, end)
        transfers = await self.stripe.list_transfers(start, end)
        logger.info(
            f"📊 System: {len(payments)} payments, {len(payouts)} payouts, "
            f"{len(referrals)} referral commissions. "
            f"Stripe: {len(intents)} payment intents, {len(transfers)} transfers"
        )

        items = compare_records(payments, payouts, intents, transfers, referrals)
        counts = {
            status: sum(1 for i in items if i["match_status"] == status)
            for status in (MATCHED, AMOUNT_MISMATCH, MISSING_FROM_STRIPE, MISSING_FROM_SYSTEM)
        }
        discrepancies = len(items) - counts[MATCHED]

        customer_total = round(self.repo.sum_paid_payments(self.db, start, end), 2)
        payout_total = round(self.repo.sum_completed_payouts(self.db, start, end), 2)

        report = ReconciliationReport(
            period_start=start,
            period_end=end,
            total_records=len(items),
            matched_count=counts[MATCHED],
            mismatch_count=counts[AMOUNT_MISMATCH],
            missing_from_stripe_count=counts[MISSING_FROM_STRIPE],
            missing_from_system_count=counts[MISSING_FROM_SYSTEM],
            discrepancy_count=discrepancies,
            customer_payments_total=customer_total,
            employee_payouts_total=payout_total,
            net_revenue=round(customer_total - payout_total, 2),
            internal_checks=self._internal_checks(start, end),
            trigger=trigger,
            items=[ReconciliationItem(**item) for item in items],
        )
        report = self.repo.save_report(self.db, report)

        if discrepancies:
            logger.warning(f"⚠️ Reconciliation report {report.id}: {discrepancies} discrepancies")
            notify_admins(
                self.db,
                "reconciliation_alert",
                "Payment reconciliation found discrepancies",
                f"{discrepancies} of {len(items)} records did not match Stripe "
                f"({counts[AMOUNT_MISMATCH]} amount mismatches, "
                f"{counts[MISSING_FROM_STRIPE]} missing from Stripe, "
                f"{counts[MISSING_FROM_SYSTEM]} missing from our system).",
                {"report_id": report.id},
            )
            self.db.commit()
        else:
            logger.info(f"✅ Reconciliation report {report.id}: all {len(items)} records matched")

        return report

    def list_reports(self, limit: int = 20) -> list[ReconciliationReport]:
        return self.repo.list_reports(self.db, limit)

    def get_report(self, report_id: int) -> ReconciliationReport:
        report = self.repo.get_report(self.db, report_id)
        if not report:
            raise HTTPException(status_code=404, detail="Reconciliation report not found")
        return report
