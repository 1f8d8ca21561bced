"""
Distance helpers for job matching

Haversine distance in miles when both points have coordinates, otherwise a
ZIP-code proxy (numeric difference of the two ZIPs, capped).
"""

import logging
import math
from typing import Optional

import zipcodes

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959
ZIP_DELTA_CAP = 50


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in miles"""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def zip_delta(zip_a: Optional[str], zip_b: Optional[str]) -> Optional[float]:
    """
    Crude proximity proxy: |zip_a - zip_b| capped at ZIP_DELTA_CAP.
    Not a mileage - only meaningful for ordering nearby ZIPs.
    """
    if not zip_a or not zip_b:
        return None
    try:
        return float(min(abs(int(zip_a[:5]) - int(zip_b[:5])), ZIP_DELTA_CAP))
    except ValueError:
        return None


def job_distance(
    origin_lat: Optional[float],
    origin_lon: Optional[float],
    job_lat: Optional[float],
    job_lon: Optional[float],
    origin_zip: Optional[str] = None,
    job_zip: Optional[str] = None,
) -> Optional[float]:
    """Distance from employee to job, None when neither method applies"""
    if None not in (origin_lat, origin_lon, job_lat, job_lon):
        return round(haversine_miles(origin_lat, origin_lon, job_lat, job_lon), 2)
    return zip_delta(origin_zip, job_zip)


def zip_centroid(zip_code: str) -> Optional[tuple[float, float]]:
    """Latitude/longitude of a ZIP code from the bundled zipcodes dataset"""
    try:
        matches = zipcodes.matching(zip_code)
    except (TypeError, ValueError) as e:
        logger.debug(f"ZIP code {zip_code} rejected by zipcodes lookup: {e}")
        return None
    if not matches:
        return None
    try:
        return float(matches[0]["lat"]), float(matches[0]["long"])
    except (KeyError, TypeError, ValueError):
        return None


def area_covers(
    area_zip: str,
    travel_distance: float,
    job_zip: Optional[str],
    job_lat: Optional[float] = None,
    job_lon: Optional[float] = None,
) -> bool:
    """
    True when a service area (zip + radius) covers the job: same ZIP, or job
    coordinates within travel_distance miles of the area ZIP's centroid.
    """
    if job_zip and job_zip[:5] == area_zip:
        return True
    if job_lat is None or job_lon is None:
        return False
    centroid = zip_centroid(area_zip)
    if not centroid:
        return False
    return haversine_miles(centroid[0], centroid[1], job_lat, job_lon) <= travel_distance
