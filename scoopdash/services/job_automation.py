"""
Operating-hours helpers and automated job unlocking

All timestamps in the database are naive UTC. Operating hours (unlock at
JOB_UNLOCK_HOUR, cutoff at JOB_CUTOFF_HOUR) are evaluated in BUSINESS_TIMEZONE.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.orm import Session

from ..config import BUSINESS_TIMEZONE, JOB_CUTOFF_HOUR, JOB_UNLOCK_HOUR
from ..models import Service

logger = logging.getLogger(__name__)

# Returns the current time as naive UTC
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.utcnow()


def business_tz() -> ZoneInfo:
    return ZoneInfo(BUSINESS_TIMEZONE)


def to_local(now_utc: datetime) -> datetime:
    return now_utc.replace(tzinfo=timezone.utc).astimezone(business_tz())


def local_to_utc(local_dt: datetime) -> datetime:
    return local_dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_time_to_utc(day: date, hour: int = 0) -> datetime:
    """The given business-local date and hour as naive UTC"""
    return local_to_utc(datetime.combine(day, time(hour), tzinfo=business_tz()))


def local_date_bounds(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a business-local calendar day, as naive UTC"""
    return local_time_to_utc(day), local_time_to_utc(day + timedelta(days=1))


def local_day_bounds(now_utc: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the business-local calendar day containing now, as naive UTC"""
    return local_date_bounds(to_local(now_utc).date())


@dataclass(frozen=True)
class OperatingWindow:
    is_open: bool
    message: Optional[str] = None
    minutes_until_open: Optional[int] = None


def operating_window(now_utc: datetime) -> OperatingWindow:
    """Whether jobs can be listed/claimed right now"""
    local_now = to_local(now_utc)

    if local_now.hour < JOB_UNLOCK_HOUR:
        opens_at = local_now.replace(hour=JOB_UNLOCK_HOUR, minute=0, second=0, microsecond=0)
        minutes = int((opens_at - local_now).total_seconds() // 60)
        return OperatingWindow(
            is_open=False,
            message=f"Jobs unlock at {_format_hour(JOB_UNLOCK_HOUR)}. Check back in {minutes} minutes.",
            minutes_until_open=minutes,
        )

    if local_now.hour >= JOB_CUTOFF_HOUR:
        return OperatingWindow(
            is_open=False,
            message=f"Job claiming closes at {_format_hour(JOB_CUTOFF_HOUR)}. Check back tomorrow.",
        )

    return OperatingWindow(is_open=True)


def _format_hour(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12} {suffix}"


def unlock_todays_jobs(db: Session, now_utc: Optional[datetime] = None) -> dict:
    """
    Unlock today's locked, unassigned, scheduled jobs once the unlock hour has passed.
    Should be run as a scheduled job (every 15 minutes).

    Returns:
        dict: Summary of jobs unlocked
    """
    now_utc = now_utc or utcnow()
    local_now = to_local(now_utc)
    summary = {"unlocked": 0, "skipped": False, "local_time": local_now.isoformat()}

    if local_now.hour < JOB_UNLOCK_HOUR:
        summary["skipped"] = True
        logger.info(f"⏰ Before unlock hour ({local_now:%H:%M} local), no jobs unlocked")
        return summary

    day_start, day_end = local_day_bounds(now_utc)
    try:
        unlocked = (
            db.query(Service)
            .filter(
                Service.is_locked.is_(True),
                Service.employee_id.is_(None),
                Service.status == "scheduled",
                Service.scheduled_date >= day_start,
                Service.scheduled_date < day_end,
            )
            .update(
                {Service.is_locked: False, Service.unlocked_at: now_utc},
                synchronize_session=False,
            )
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Job unlock failed: {e}")
        raise

    summary["unlocked"] = unlocked
    if unlocked:
        logger.info(f"🔓 Unlocked {unlocked} job(s) for {local_now.date()}")
    return summary


def get_clock() -> Clock:
    """FastAPI dependency for the current-time source, overridden in tests"""
    return utcnow
