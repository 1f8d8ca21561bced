"""
Employee profile and service area routes

Service areas are ZIP + travel radius pairs; the first area is the employee's
primary ZIP, used for the ZIP-distance fallback on the job board.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_employee
from ..database import get_db
from ..models import Employee, ServiceArea
from ..services.service_area_validator import MAX_TRAVEL_DISTANCE, ServiceAreaValidator
from ..shared.validators import validate_cash_app_tag, validate_us_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employee", tags=["Employee"])

MAX_SERVICE_AREAS = 10


class ServiceAreaItem(BaseModel):
    zip_code: str = Field(..., min_length=5, max_length=10)
    travel_distance: float = Field(10, description="Miles the employee will travel from this ZIP")


class ServiceAreasUpdate(BaseModel):
    service_areas: list[ServiceAreaItem] = Field(..., max_length=MAX_SERVICE_AREAS)


class ServiceAreaResponse(BaseModel):
    id: int
    zip_code: str
    travel_distance: float


class ServiceAreasResponse(BaseModel):
    service_areas: list[ServiceAreaResponse]
    max_travel_distance: float = MAX_TRAVEL_DISTANCE


class EmployeeProfile(BaseModel):
    id: int
    full_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    average_rating: float
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    cash_app_username: Optional[str] = None
    stripe_connect_account_id: Optional[str] = None


class EmployeeProfileUpdate(BaseModel):
    phone: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    cash_app_username: Optional[str] = None
    stripe_connect_account_id: Optional[str] = Field(None, pattern=r"^acct_[A-Za-z0-9]+$")

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("cash_app_username")
    @classmethod
    def check_cash_tag(cls, v):
        if v:
            return validate_cash_app_tag(v)
        return v


def _areas_response(employee: Employee) -> ServiceAreasResponse:
    return ServiceAreasResponse(
        service_areas=[
            ServiceAreaResponse(id=a.id, zip_code=a.zip_code, travel_distance=a.travel_distance)
            for a in employee.service_areas
        ]
    )


def _profile(employee: Employee) -> EmployeeProfile:
    return EmployeeProfile(
        id=employee.id,
        full_name=employee.user.full_name,
        email=employee.user.email,
        phone=employee.phone,
        average_rating=round(employee.average_rating or 0, 2),
        latitude=employee.latitude,
        longitude=employee.longitude,
        cash_app_username=employee.cash_app_username,
        stripe_connect_account_id=employee.stripe_connect_account_id,
    )


@router.get("/profile", response_model=EmployeeProfile)
async def get_profile(employee: Employee = Depends(get_current_employee)):
    return _profile(employee)


@router.put("/profile", response_model=EmployeeProfile)
async def update_profile(
    data: EmployeeProfileUpdate,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Update contact details, home base and payout accounts"""
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(employee, key, value)
    db.commit()
    db.refresh(employee)
    return _profile(employee)


@router.get("/service-areas", response_model=ServiceAreasResponse)
async def get_service_areas(employee: Employee = Depends(get_current_employee)):
    return _areas_response(employee)


@router.put("/service-areas", response_model=ServiceAreasResponse)
async def replace_service_areas(
    data: ServiceAreasUpdate,
    employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    """Replace all of the employee's service areas, keeping the given order"""
    validator = ServiceAreaValidator(db)

    areas = []
    seen = set()
    for item in data.service_areas:
        zip_code, error = validator.validate_area(item.zip_code, item.travel_distance)
        if error:
            raise HTTPException(status_code=400, detail=error)
        if zip_code in seen:
            raise HTTPException(status_code=400, detail=f"Duplicate service area ZIP: {zip_code}")
        seen.add(zip_code)
        areas.append(ServiceArea(zip_code=zip_code, travel_distance=item.travel_distance))

    try:
        employee.service_areas = areas
        db.commit()
        db.refresh(employee)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save service areas for employee {employee.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to save service areas") from e

    logger.info(f"✅ Employee {employee.id} now covers {len(areas)} service area(s)")
    return _areas_response(employee)
