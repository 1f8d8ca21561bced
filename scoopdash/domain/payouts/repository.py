"""Payout repository - Database operations for employee payouts"""

from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session, joinedload

from ...models import Customer, Payout, Service


class PayoutRepository:
    """Repository for payout database operations"""

    @staticmethod
    def get_payable_services(
        db: Session, employee_id: int, service_ids: Optional[list[int]] = None
    ) -> list[Service]:
        """Completed services not yet paid and not reserved by another payout"""
        query = (
            db.query(Service)
            .options(joinedload(Service.customer).joinedload(Customer.user))
            .filter(
                Service.employee_id == employee_id,
                Service.status == "completed",
                Service.payment_status == "pending",
                Service.payout_id.is_(None),
            )
        )
        if service_ids is not None:
            query = query.filter(Service.id.in_(service_ids))
        return query.order_by(Service.completed_at.asc(), Service.id.asc()).all()

    @staticmethod
    def sum_net(db: Session, employee_id: int, statuses: tuple[str, ...]) -> float:
        return (
            db.query(func.sum(Payout.net_amount))
            .filter(Payout.employee_id == employee_id, Payout.status.in_(statuses))
            .scalar()
            or 0
        )

    @staticmethod
    def get_last_completed(db: Session, employee_id: int) -> Optional[Payout]:
        return (
            db.query(Payout)
            .filter(Payout.employee_id == employee_id, Payout.status == "completed")
            .order_by(Payout.completed_at.desc())
            .first()
        )

    @staticmethod
    def get_payouts(db: Session, employee_id: int, status: Optional[str] = None) -> list[Payout]:
        query = db.query(Payout).filter(Payout.employee_id == employee_id)
        if status:
            query = query.filter(Payout.status == status)
        return query.order_by(Payout.requested_at.desc(), Payout.id.desc()).all()

    @staticmethod
    def get_payout(db: Session, payout_id: int) -> Optional[Payout]:
        return db.query(Payout).filter(Payout.id == payout_id).first()

    @staticmethod
    def get_payout_services(db: Session, payout: Payout) -> list[Service]:
        return db.query(Service).filter(Service.payout_id == payout.id).all()

    @staticmethod
    def create_payout(db: Session, services: list[Service], **payout_data) -> Optional[Payout]:
        """
        Insert the payout and reserve its services with one conditional UPDATE.

        A service is only reserved if it is still unpaid and unreserved. If any
        of them was taken by a concurrent payout the whole transaction is rolled
        back and None is returned.
        """
        payout = Payout(**payout_data)
        db.add(payout)
        db.flush()

        service_ids = [s.id for s in services]
        result = db.execute(
            update(Service)
            .where(
                Service.id.in_(service_ids),
                Service.payout_id.is_(None),
                Service.payment_status == "pending",
            )
            .values(payout_id=payout.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(service_ids):
            db.rollback()
            return None

        db.commit()
        db.refresh(payout)
        return payout
