"""
Customer-facing service history and ratings
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..auth import get_current_customer
from ..database import get_db
from ..models import Customer, Employee, Service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/customer", tags=["Customer"])


class CustomerServiceResponse(BaseModel):
    id: int
    service_type: Optional[str] = None
    status: str
    scheduled_date: datetime
    completed_at: Optional[datetime] = None
    arrival_deadline: Optional[datetime] = None
    employee_name: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None


class RatingRequest(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=2000)


class RatingResponse(BaseModel):
    service_id: int
    rating: int
    employee_average_rating: float


def recalculate_employee_rating(db: Session, employee_id: int) -> float:
    """Average of every rating the employee has received, 0 when unrated"""
    average = (
        db.query(func.avg(Service.rating))
        .filter(Service.employee_id == employee_id, Service.rating.isnot(None))
        .scalar()
    )
    return float(average) if average is not None else 0.0


@router.get("/services", response_model=list[CustomerServiceResponse])
async def get_my_services(
    status: Optional[str] = None,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    query = (
        db.query(Service)
        .options(joinedload(Service.employee).joinedload(Employee.user))
        .filter(Service.customer_id == customer.id)
    )
    if status:
        query = query.filter(Service.status == status)

    return [
        CustomerServiceResponse(
            id=s.id,
            service_type=s.service_type,
            status=s.status,
            scheduled_date=s.scheduled_date,
            completed_at=s.completed_at,
            arrival_deadline=s.arrival_deadline,
            employee_name=s.employee.user.full_name if s.employee else None,
            rating=s.rating,
            feedback=s.feedback,
        )
        for s in query.order_by(Service.scheduled_date.desc()).all()
    ]


@router.post("/services/{service_id}/rating", response_model=RatingResponse)
async def rate_service(
    service_id: int,
    data: RatingRequest,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    """Rate a completed service and refresh the employee's average rating"""
    service = (
        db.query(Service)
        .filter(Service.id == service_id, Service.customer_id == customer.id)
        .first()
    )
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")
    if service.status != "completed" or not service.employee_id:
        raise HTTPException(status_code=400, detail="Only completed services can be rated")

    service.rating = data.rating
    service.feedback = data.feedback
    db.flush()

    employee = db.query(Employee).filter(Employee.id == service.employee_id).first()
    employee.average_rating = recalculate_employee_rating(db, employee.id)
    db.commit()

    logger.info(
        f"⭐ Service {service.id} rated {data.rating}, employee {employee.id} "
        f"average now {employee.average_rating:.2f}"
    )
    return RatingResponse(
        service_id=service.id,
        rating=data.rating,
        employee_average_rating=round(employee.average_rating, 2),
    )
