"""Job router - FastAPI endpoints for the employee job board"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...auth import get_current_employee
from ...database import get_db
from ...models import Employee
from ...rate_limiter import create_rate_limiter
from ...services.job_automation import Clock, get_clock
from .schemas import (
    ActiveJob,
    AvailableJobsResponse,
    ClaimJobResponse,
    CompleteJobRequest,
    JobActionResponse,
    LocationQuery,
)
from .service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/employee/jobs", tags=["Jobs"])

rate_limit_claims = create_rate_limiter(limit=30, window_seconds=60, key_prefix="job_claim")


def get_job_service(
    db: Session = Depends(get_db), clock: Clock = Depends(get_clock)
) -> JobService:
    """Dependency injection for JobService"""
    return JobService(db, clock)


@router.get("/available", response_model=AvailableJobsResponse)
async def get_available_jobs(
    latitude: Optional[float] = Query(None),
    longitude: Optional[float] = Query(None),
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
):
    """Closest open jobs in the employee's service areas, nearest first"""
    try:
        location = LocationQuery(latitude=latitude, longitude=longitude)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from None

    try:
        return service.get_available_jobs(employee, location.latitude, location.longitude)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Failed to load available jobs for employee {employee.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to load available jobs") from e


@router.get("/active", response_model=list[ActiveJob])
async def get_active_jobs(
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
):
    """Jobs the employee has claimed or is working on"""
    return service.get_active_jobs(employee)


@router.post("/{job_id}/claim", response_model=ClaimJobResponse)
async def claim_job(
    job_id: int,
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
    _: None = Depends(rate_limit_claims),
):
    try:
        return service.claim_job(job_id, employee)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Claim failed for job {job_id} by employee {employee.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to claim job") from e


@router.post("/{job_id}/start", response_model=JobActionResponse)
async def start_job(
    job_id: int,
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
):
    return service.start_job(job_id, employee)


@router.post("/{job_id}/release", response_model=JobActionResponse)
async def release_job(
    job_id: int,
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
):
    return service.release_job(job_id, employee)


@router.post("/{job_id}/complete", response_model=JobActionResponse)
async def complete_job(
    job_id: int,
    data: Optional[CompleteJobRequest] = None,
    employee: Employee = Depends(get_current_employee),
    service: JobService = Depends(get_job_service),
):
    try:
        return service.complete_job(job_id, employee, data.notes if data else None)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Completing job {job_id} failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to complete job") from e
