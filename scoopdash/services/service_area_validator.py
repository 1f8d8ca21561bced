"""
Service Area Validation Service

Validates employee service areas (ZIP + travel radius) and checks whether a
customer's address falls inside any of them.
Uses zipcodes library for comprehensive US ZIP code data.
"""

import logging
from typing import Optional

import zipcodes
from sqlalchemy.orm import Session

from ..models import Customer, Employee, ServiceArea
from ..shared.validators import normalize_zip_code
from .geolocation import area_covers

logger = logging.getLogger(__name__)

MIN_TRAVEL_DISTANCE = 1
MAX_TRAVEL_DISTANCE = 50


class ServiceAreaValidator:
    """Validates ZIP codes against an employee's configured service areas."""

    def __init__(self, db: Session):
        self.db = db

    def validate_area(self, zip_code: str, travel_distance: float) -> tuple[Optional[str], Optional[str]]:
        """
        Validate one service area entry.

        Returns:
            Tuple of (normalized_zip, error_message)
        """
        normalized = normalize_zip_code(zip_code)
        if not normalized:
            return None, f"Invalid ZIP code format: {zip_code}"

        if not self._zip_exists(normalized):
            return None, f"Unknown ZIP code: {normalized}"

        if travel_distance is None or not (
            MIN_TRAVEL_DISTANCE <= travel_distance <= MAX_TRAVEL_DISTANCE
        ):
            return None, (
                f"Travel distance must be between {MIN_TRAVEL_DISTANCE} and "
                f"{MAX_TRAVEL_DISTANCE} miles"
            )

        return normalized, None

    def _zip_exists(self, zip_code: str) -> bool:
        try:
            return bool(zipcodes.matching(zip_code))
        except (TypeError, ValueError) as e:
            logger.debug(f"ZIP code {zip_code} rejected by zipcodes lookup: {e}")
            return False

    def customer_in_service_area(self, employee: Employee, customer: Customer) -> bool:
        """True when any of the employee's areas covers the customer's address"""
        zip_code = normalize_zip_code(customer.zip_code)
        if not zip_code and customer.latitude is None:
            return False

        areas = (
            self.db.query(ServiceArea)
            .filter(ServiceArea.employee_id == employee.id)
            .order_by(ServiceArea.id)
            .all()
        )
        return any(
            area_covers(
                area.zip_code,
                area.travel_distance,
                zip_code,
                customer.latitude,
                customer.longitude,
            )
            for area in areas
        )
