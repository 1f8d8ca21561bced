"""Job repository - Database operations for services as seen by employees"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session, aliased, joinedload

from ...models import ACTIVE_JOB_STATUSES, Customer, Service


class JobRepository:
    """Repository for job database operations"""

    @staticmethod
    def count_active_jobs(db: Session, employee_id: int) -> int:
        return (
            db.query(Service)
            .filter(Service.employee_id == employee_id, Service.status.in_(ACTIVE_JOB_STATUSES))
            .count()
        )

    @staticmethod
    def get_active_jobs(db: Session, employee_id: int) -> list[Service]:
        return (
            db.query(Service)
            .options(joinedload(Service.customer).joinedload(Customer.user))
            .filter(Service.employee_id == employee_id, Service.status.in_(ACTIVE_JOB_STATUSES))
            .order_by(Service.arrival_deadline.asc(), Service.id.asc())
            .all()
        )

    @staticmethod
    def get_open_jobs(db: Session, day_start: datetime, day_end: datetime) -> list[Service]:
        """Unassigned, unlocked, scheduled jobs for the given UTC range"""
        return (
            db.query(Service)
            .join(Customer, Service.customer_id == Customer.id)
            .options(joinedload(Service.customer).joinedload(Customer.user))
            .filter(
                Service.employee_id.is_(None),
                Service.is_locked.is_(False),
                Service.status == "scheduled",
                Service.scheduled_date >= day_start,
                Service.scheduled_date < day_end,
            )
            .order_by(Service.scheduled_date.asc(), Service.id.asc())
            .all()
        )

    @staticmethod
    def get_job(db: Session, job_id: int) -> Optional[Service]:
        return (
            db.query(Service)
            .options(joinedload(Service.customer).joinedload(Customer.user))
            .filter(Service.id == job_id)
            .first()
        )

    @staticmethod
    def claim_job(
        db: Session,
        job_id: int,
        employee_id: int,
        claimed_at: datetime,
        arrival_deadline: datetime,
        require_no_active_job: bool,
    ) -> bool:
        """
        Assign the job with a single conditional UPDATE.

        The row only changes if it is still unassigned, scheduled and unlocked
        (and, for employees below the rating gate, if they hold no active job),
        so concurrent claims resolve to exactly one winner.
        """
        stmt = (
            update(Service)
            .where(
                Service.id == job_id,
                Service.employee_id.is_(None),
                Service.status == "scheduled",
                Service.is_locked.is_(False),
            )
            .values(
                employee_id=employee_id,
                status="claimed",
                claimed_at=claimed_at,
                arrival_deadline=arrival_deadline,
            )
            .execution_options(synchronize_session=False)
        )

        if require_no_active_job:
            held = aliased(Service)
            has_active = (
                select(held.id)
                .where(held.employee_id == employee_id, held.status.in_(ACTIVE_JOB_STATUSES))
                .exists()
            )
            stmt = stmt.where(~has_active)

        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def save(db: Session, job: Service) -> Service:
        db.commit()
        db.refresh(job)
        return job
