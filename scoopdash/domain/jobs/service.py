"""Job service - Availability, claiming and the job lifecycle for employees"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...config import (
    ARRIVAL_WINDOW_MINUTES,
    AVAILABLE_JOBS_LIMIT,
    QUEUE_RATING_THRESHOLD,
)
from ...models import Employee, Service
from ...services.geolocation import area_covers, job_distance
from ...services.job_automation import (
    Clock,
    local_day_bounds,
    operating_window,
    to_local,
    utcnow,
)
from ...services.notification_service import create_notification
from ...services.service_area_validator import ServiceAreaValidator
from ...shared.validators import normalize_zip_code
from .repository import JobRepository

logger = logging.getLogger(__name__)

QUEUE_BLOCKED_MESSAGE = (
    f"Finish your current job before claiming another. Scoopers rated "
    f"{QUEUE_RATING_THRESHOLD}+ can queue multiple jobs."
)


def can_queue_multiple(employee: Employee) -> bool:
    """Rating gate for holding more than one active job"""
    return (employee.average_rating or 0) >= QUEUE_RATING_THRESHOLD


def sort_by_distance(jobs: list[dict], limit: int) -> list[dict]:
    """Stable ascending sort on distance with unknown distances last, then truncate"""
    ordered = sorted(
        jobs,
        key=lambda j: (j["distance"] is None, j["distance"] if j["distance"] is not None else 0),
    )
    return ordered[:limit]


def _address(service: Service) -> dict:
    customer = service.customer
    return {
        "street": customer.street,
        "city": customer.city,
        "state": customer.state,
        "zip_code": customer.zip_code,
        "latitude": customer.latitude,
        "longitude": customer.longitude,
    }


def _customer_name(service: Service) -> Optional[str]:
    user = service.customer.user if service.customer else None
    return user.full_name if user else None


def serialize_active_job(service: Service) -> dict:
    return {
        "id": service.id,
        "status": service.status,
        "service_type": service.service_type,
        "scheduled_date": service.scheduled_date,
        "potential_earnings": service.potential_earnings or 0,
        "customer_name": _customer_name(service),
        "customer_phone": service.customer.phone,
        "gate_code": service.customer.gate_code,
        "address": _address(service),
        "claimed_at": service.claimed_at,
        "arrival_deadline": service.arrival_deadline,
        "started_at": service.started_at,
        "completed_at": service.completed_at,
        "notes": service.notes,
    }


class JobService:
    """Service layer for the employee job board"""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock
        self.repo = JobRepository()
        self.area_validator = ServiceAreaValidator(db)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def get_available_jobs(
        self,
        employee: Employee,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
    ) -> dict:
        """Closest open jobs in the employee's service areas for today"""
        now = self.clock()
        active_count = self.repo.count_active_jobs(self.db, employee.id)
        can_queue = can_queue_multiple(employee)

        response = {
            "jobs": [],
            "count": 0,
            "limit": AVAILABLE_JOBS_LIMIT,
            "active_job_count": active_count,
            "can_queue_multiple": can_queue,
            "message": None,
            "minutes_until_unlock": None,
        }

        window = operating_window(now)
        if not window.is_open:
            response["message"] = window.message
            response["minutes_until_unlock"] = window.minutes_until_open
            return response

        if active_count > 0 and not can_queue:
            response["message"] = QUEUE_BLOCKED_MESSAGE
            return response

        areas = list(employee.service_areas)
        if not areas:
            response["message"] = "Add a service area to start seeing jobs near you."
            return response

        if latitude is None or longitude is None:
            latitude, longitude = employee.latitude, employee.longitude
        primary_zip = areas[0].zip_code
        weekday = to_local(now).strftime("%A").lower()

        day_start, day_end = local_day_bounds(now)
        candidates = []
        for service in self.repo.get_open_jobs(self.db, day_start, day_end):
            customer = service.customer
            if customer.service_day and customer.service_day.lower() != weekday:
                continue

            job_zip = normalize_zip_code(customer.zip_code)
            if not any(
                area_covers(a.zip_code, a.travel_distance, job_zip, customer.latitude, customer.longitude)
                for a in areas
            ):
                continue

            candidates.append(
                {
                    "id": service.id,
                    "service_type": service.service_type,
                    "scheduled_date": service.scheduled_date,
                    "potential_earnings": service.potential_earnings or 0,
                    "customer_name": _customer_name(service),
                    "address": _address(service),
                    "distance": job_distance(
                        latitude,
                        longitude,
                        customer.latitude,
                        customer.longitude,
                        origin_zip=primary_zip,
                        job_zip=job_zip,
                    ),
                }
            )

        jobs = sort_by_distance(candidates, AVAILABLE_JOBS_LIMIT)
        response["jobs"] = jobs
        response["count"] = len(jobs)
        if not jobs:
            response["message"] = "No jobs available in your service areas right now."

        logger.info(
            f"📊 Employee {employee.id}: {len(candidates)} matching jobs, returning {len(jobs)}"
        )
        return response

    def get_active_jobs(self, employee: Employee) -> list[dict]:
        return [serialize_active_job(s) for s in self.repo.get_active_jobs(self.db, employee.id)]

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    def claim_job(self, job_id: int, employee: Employee) -> dict:
        now = self.clock()

        window = operating_window(now)
        if not window.is_open:
            raise HTTPException(status_code=400, detail=window.message)

        active_count = self.repo.count_active_jobs(self.db, employee.id)
        can_queue = can_queue_multiple(employee)
        if active_count > 0 and not can_queue:
            raise HTTPException(status_code=400, detail=QUEUE_BLOCKED_MESSAGE)

        job = self.repo.get_job(self.db, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if job.is_locked:
            raise HTTPException(status_code=400, detail="This job is not available yet")
        if job.employee_id is not None:
            raise HTTPException(status_code=409, detail="This job has already been claimed")
        if job.status != "scheduled":
            raise HTTPException(status_code=400, detail=f"Job cannot be claimed (status: {job.status})")
        if not normalize_zip_code(job.customer.zip_code):
            raise HTTPException(status_code=400, detail="Job address is missing a ZIP code")
        if not self.area_validator.customer_in_service_area(employee, job.customer):
            raise HTTPException(status_code=400, detail="This job is outside your service areas")

        claimed = self.repo.claim_job(
            self.db,
            job_id=job.id,
            employee_id=employee.id,
            claimed_at=now,
            arrival_deadline=now + timedelta(minutes=ARRIVAL_WINDOW_MINUTES),
            require_no_active_job=not can_queue,
        )
        if not claimed:
            logger.warning(f"⚠️ Claim race lost: job {job_id} by employee {employee.id}")
            raise HTTPException(status_code=409, detail="This job has already been claimed")

        job = self.repo.get_job(self.db, job_id)
        create_notification(
            self.db,
            job.customer.user_id,
            "service_claimed",
            "Your scooper is on the way",
            f"Your service has been claimed. Expect your scooper by {to_local(job.arrival_deadline):%I:%M %p}.",
            {"service_id": job.id},
        )
        self.db.commit()

        logger.info(f"✅ Job {job.id} claimed by employee {employee.id}")
        return {
            "success": True,
            "message": "Job claimed",
            "job": serialize_active_job(job),
            "active_job_count": active_count + 1,
            "can_queue_more": can_queue,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _get_assigned_job(self, job_id: int, employee: Employee) -> Service:
        job = self.repo.get_job(self.db, job_id)
        if not job:
            raise HTTPException(status_code=404, detail="Job not found")
        if job.employee_id != employee.id:
            raise HTTPException(status_code=403, detail="This job is not assigned to you")
        return job

    def start_job(self, job_id: int, employee: Employee) -> dict:
        job = self._get_assigned_job(job_id, employee)
        if job.status != "claimed":
            raise HTTPException(status_code=400, detail=f"Job cannot be started (status: {job.status})")

        job.status = "in_progress"
        job.started_at = self.clock()
        job = self.repo.save(self.db, job)
        logger.info(f"🔄 Job {job.id} started by employee {employee.id}")
        return {"success": True, "message": "Job started", "job": serialize_active_job(job)}

    def release_job(self, job_id: int, employee: Employee) -> dict:
        """Hand a claimed (not yet started) job back to the board"""
        job = self._get_assigned_job(job_id, employee)
        if job.status != "claimed":
            raise HTTPException(status_code=400, detail=f"Job cannot be released (status: {job.status})")

        job.status = "scheduled"
        job.employee_id = None
        job.claimed_at = None
        job.arrival_deadline = None
        job = self.repo.save(self.db, job)
        logger.info(f"🔄 Job {job.id} released by employee {employee.id}")
        return {"success": True, "message": "Job released", "job": serialize_active_job(job)}

    def complete_job(self, job_id: int, employee: Employee, notes: Optional[str] = None) -> dict:
        job = self._get_assigned_job(job_id, employee)
        if job.status not in ("claimed", "in_progress"):
            raise HTTPException(status_code=400, detail=f"Job cannot be completed (status: {job.status})")

        now: datetime = self.clock()
        job.status = "completed"
        job.completed_at = now
        if job.started_at is None:
            job.started_at = now
        if notes:
            job.notes = notes

        create_notification(
            self.db,
            job.customer.user_id,
            "service_completed",
            "Your yard is clean!",
            "Your scooper just finished today's service. Let us know how we did.",
            {"service_id": job.id},
        )
        job = self.repo.save(self.db, job)
        logger.info(f"✅ Job {job.id} completed by employee {employee.id}")
        return {"success": True, "message": "Job completed", "job": serialize_active_job(job)}
