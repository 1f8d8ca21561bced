"""
Service scheduling

Admins create single visits or generate visits for a date range from each
customer's service day. Customers can book a one-time visit at their own
address. Every new visit starts locked and becomes claimable at the morning
unlock run.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from ..auth import get_current_admin, get_current_customer
from ..config import DEFAULT_JOB_EARNINGS, SERVICE_START_HOUR
from ..database import get_db
from ..models import Customer, Service, User
from ..services.job_automation import Clock, get_clock, local_date_bounds, local_time_to_utc, to_local
from ..services.notification_service import create_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customer/services", tags=["Customer"])
admin_router = APIRouter(prefix="/admin/services", tags=["Admin"])

MAX_SCHEDULE_RANGE_DAYS = 31
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ServiceCreate(BaseModel):
    customer_id: int
    scheduled_date: datetime
    service_type: Literal["weekly", "bi_weekly", "one_time"] = "one_time"
    potential_earnings: float = Field(DEFAULT_JOB_EARNINGS, gt=0)
    notes: Optional[str] = Field(None, max_length=2000)


class ScheduleRangeRequest(BaseModel):
    start_date: date
    end_date: date
    potential_earnings: float = Field(DEFAULT_JOB_EARNINGS, gt=0)

    @model_validator(mode="after")
    def check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if (self.end_date - self.start_date).days >= MAX_SCHEDULE_RANGE_DAYS:
            raise ValueError(f"Schedule at most {MAX_SCHEDULE_RANGE_DAYS} days at a time")
        return self


class BookingRequest(BaseModel):
    service_date: date
    notes: Optional[str] = Field(None, max_length=2000)


class ScheduledServiceResponse(BaseModel):
    id: int
    customer_id: int
    service_type: Optional[str] = None
    status: str
    scheduled_date: datetime
    is_locked: bool
    potential_earnings: float
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class ScheduleRangeResult(BaseModel):
    created: int
    skipped: int
    service_ids: list[int]


def service_dates(start: date, end: date, service_day: str) -> list[date]:
    """Every date in [start, end] that falls on the named weekday"""
    target = WEEKDAYS.index(service_day.lower())
    first = start + timedelta(days=(target - start.weekday()) % 7)
    dates = []
    while first <= end:
        dates.append(first)
        first += timedelta(weeks=1)
    return dates


def _has_service_on(db: Session, customer_id: int, day: date) -> bool:
    start, end = local_date_bounds(day)
    return (
        db.query(Service)
        .filter(
            Service.customer_id == customer_id,
            Service.status != "cancelled",
            Service.scheduled_date >= start,
            Service.scheduled_date < end,
        )
        .first()
        is not None
    )


def _new_service(
    customer: Customer,
    scheduled_date: datetime,
    service_type: str,
    potential_earnings: float,
    notes: Optional[str] = None,
) -> Service:
    if not customer.zip_code:
        raise HTTPException(status_code=400, detail="Customer has no service address on file")
    return Service(
        customer_id=customer.id,
        service_type=service_type,
        status="scheduled",
        scheduled_date=scheduled_date,
        is_locked=True,
        potential_earnings=round(potential_earnings, 2),
        notes=notes,
    )


@admin_router.post("", response_model=ScheduledServiceResponse, status_code=201)
async def create_service(
    data: ServiceCreate,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Schedule a single visit for a customer"""
    customer = db.query(Customer).filter(Customer.id == data.customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")

    scheduled_date = data.scheduled_date
    if scheduled_date.tzinfo is not None:
        scheduled_date = scheduled_date.astimezone(timezone.utc).replace(tzinfo=None)

    service = _new_service(
        customer, scheduled_date, data.service_type, data.potential_earnings, data.notes
    )
    db.add(service)
    db.flush()
    create_notification(
        db,
        customer.user_id,
        "service_scheduled",
        "Service scheduled",
        f"A visit is scheduled for {to_local(scheduled_date):%A, %B %d}.",
        {"service_id": service.id},
    )
    db.commit()
    db.refresh(service)
    logger.info(f"📅 Admin {admin.email} scheduled service {service.id} for customer {customer.id}")
    return service


@admin_router.post("/schedule", response_model=ScheduleRangeResult)
async def schedule_services(
    data: ScheduleRangeRequest,
    admin: User = Depends(get_current_admin),
    db: Session = Depends(get_db),
):
    """Create a weekly visit on each customer's service day across the range, skipping days already booked"""
    customers = (
        db.query(Customer)
        .filter(Customer.service_day.isnot(None), Customer.zip_code.isnot(None))
        .order_by(Customer.id)
        .all()
    )

    created: list[Service] = []
    skipped = 0
    for customer in customers:
        if customer.service_day.lower() not in WEEKDAYS:
            logger.warning(f"⚠️ Customer {customer.id} has invalid service day {customer.service_day!r}")
            continue
        for day in service_dates(data.start_date, data.end_date, customer.service_day):
            if _has_service_on(db, customer.id, day):
                skipped += 1
                continue
            service = _new_service(
                customer,
                local_time_to_utc(day, SERVICE_START_HOUR),
                "weekly",
                data.potential_earnings,
            )
            db.add(service)
            created.append(service)

    db.commit()
    logger.info(
        f"📅 Admin {admin.email} scheduled {len(created)} service(s) "
        f"from {data.start_date} to {data.end_date}, {skipped} already booked"
    )
    return ScheduleRangeResult(
        created=len(created),
        skipped=skipped,
        service_ids=[s.id for s in created],
    )


@router.post("", response_model=ScheduledServiceResponse, status_code=201)
async def book_service(
    data: BookingRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Book a one-time visit at the customer's address"""
    if data.service_date < to_local(clock()).date():
        raise HTTPException(status_code=400, detail="Cannot book a service in the past")
    if _has_service_on(db, customer.id, data.service_date):
        raise HTTPException(status_code=409, detail="You already have a service booked that day")

    service = _new_service(
        customer,
        local_time_to_utc(data.service_date, SERVICE_START_HOUR),
        "one_time",
        DEFAULT_JOB_EARNINGS,
        data.notes,
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    logger.info(f"📅 Customer {customer.id} booked service {service.id} for {data.service_date}")
    return service
