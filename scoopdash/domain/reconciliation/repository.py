"""Reconciliation repository - System-side records and stored reports"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from ...models import Earning, Payment, Payout, ReconciliationReport, Referral, Service


class ReconciliationRepository:
    """Repository for reconciliation database operations"""

    @staticmethod
    def get_stripe_payments(db: Session, start: datetime, end: datetime) -> list[Payment]:
        """Paid customer payments that should have a Stripe payment intent"""
        return (
            db.query(Payment)
            .filter(
                Payment.status == "paid",
                Payment.stripe_payment_intent_id.isnot(None),
                Payment.paid_at >= start,
                Payment.paid_at <= end,
            )
            .order_by(Payment.id)
            .all()
        )

    @staticmethod
    def get_stripe_payouts(db: Session, start: datetime, end: datetime) -> list[Payout]:
        """Completed Stripe-rail payouts that should have a Stripe transfer"""
        return (
            db.query(Payout)
            .filter(
                Payout.status == "completed",
                Payout.payment_method == "stripe",
                Payout.stripe_transfer_id.isnot(None),
                Payout.processed_at >= start,
                Payout.processed_at <= end,
            )
            .order_by(Payout.id)
            .all()
        )

    @staticmethod
    def get_stripe_referrals(db: Session, start: datetime, end: datetime) -> list[Referral]:
        """Paid referral commissions, each sent as a Stripe transfer"""
        return (
            db.query(Referral)
            .filter(
                Referral.status == "paid",
                Referral.stripe_transfer_id.isnot(None),
                Referral.paid_at >= start,
                Referral.paid_at <= end,
            )
            .order_by(Referral.id)
            .all()
        )

    @staticmethod
    def sum_paid_payments(db: Session, start: datetime, end: datetime) -> float:
        return (
            db.query(func.sum(Payment.amount))
            .filter(Payment.status == "paid", Payment.paid_at >= start, Payment.paid_at <= end)
            .scalar()
            or 0
        )

    @staticmethod
    def sum_completed_payouts(db: Session, start: datetime, end: datetime, column=Payout.net_amount) -> float:
        return (
            db.query(func.sum(column))
            .filter(
                Payout.status == "completed",
                Payout.completed_at >= start,
                Payout.completed_at <= end,
            )
            .scalar()
            or 0
        )

    @staticmethod
    def sum_paid_earnings(db: Session, start: datetime, end: datetime) -> float:
        return (
            db.query(func.sum(Earning.amount))
            .filter(Earning.status == "paid", Earning.paid_at >= start, Earning.paid_at <= end)
            .scalar()
            or 0
        )

    @staticmethod
    def get_failed_payments(db: Session, start: datetime, end: datetime) -> list[Payment]:
        return (
            db.query(Payment)
            .filter(
                Payment.status == "failed",
                Payment.created_at >= start,
                Payment.created_at <= end,
            )
            .all()
        )

    @staticmethod
    def count_stale_unpaid_services(db: Session, completed_before: datetime) -> int:
        """Completed services whose earnings have sat unpaid since before the window"""
        return (
            db.query(Service)
            .filter(
                Service.status == "completed",
                Service.payment_status == "pending",
                Service.completed_at < completed_before,
            )
            .count()
        )

    @staticmethod
    def save_report(db: Session, report: ReconciliationReport) -> ReconciliationReport:
        db.add(report)
        db.commit()
        db.refresh(report)
        return report

    @staticmethod
    def list_reports(db: Session, limit: int = 20) -> list[ReconciliationReport]:
        return (
            db.query(ReconciliationReport)
            .order_by(ReconciliationReport.created_at.desc(), ReconciliationReport.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_report(db: Session, report_id: int) -> Optional[ReconciliationReport]:
        return (
            db.query(ReconciliationReport)
            .options(selectinload(ReconciliationReport.items))
            .filter(ReconciliationReport.id == report_id)
            .first()
        )
