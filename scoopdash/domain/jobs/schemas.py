"""Job domain schemas - Pydantic models for the employee job board"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class JobAddress(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class AvailableJob(BaseModel):
    id: int
    service_type: Optional[str] = None
    scheduled_date: datetime
    potential_earnings: float
    customer_name: Optional[str] = None
    address: JobAddress
    distance: Optional[float] = None  # miles, or ZIP-delta proxy when coordinates are missing


class AvailableJobsResponse(BaseModel):
    jobs: list[AvailableJob]
    count: int
    limit: int
    active_job_count: int
    can_queue_multiple: bool
    message: Optional[str] = None
    minutes_until_unlock: Optional[int] = None


class ActiveJob(BaseModel):
    id: int
    status: str
    service_type: Optional[str] = None
    scheduled_date: datetime
    potential_earnings: float
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    gate_code: Optional[str] = None
    address: JobAddress
    claimed_at: Optional[datetime] = None
    arrival_deadline: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


class ClaimJobResponse(BaseModel):
    success: bool
    message: str
    job: ActiveJob
    active_job_count: int
    can_queue_more: bool


class JobActionResponse(BaseModel):
    success: bool
    message: str
    job: ActiveJob


class CompleteJobRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class LocationQuery(BaseModel):
    """Optional live position sent by the employee app"""

    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def both_or_neither(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be provided together")
        return self
