"""
Registration, login and current-user endpoints
"""

import logging
from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import Customer, Employee, Referral, User
from ..security_utils import create_jwt_token, hash_password, verify_password
from ..services.notification_service import create_notification
from ..shared.validators import normalize_zip_code, validate_email, validate_us_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


class RegisterRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str = Field(..., min_length=1, max_length=255)
    role: Literal["employee", "customer"] = "customer"
    phone: Optional[str] = None
    # Customer service address
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = Field(None, max_length=2)
    zip_code: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    gate_code: Optional[str] = None
    service_day: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        if v:
            return validate_us_phone(v)
        return v

    @field_validator("zip_code")
    @classmethod
    def check_zip(cls, v):
        if v:
            normalized = normalize_zip_code(v)
            if not normalized:
                raise ValueError("ZIP code must be 5 or 9 digits")
            return normalized
        return v

    @field_validator("service_day")
    @classmethod
    def check_service_day(cls, v):
        if v:
            day = v.strip().capitalize()
            if day not in ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"):
                raise ValueError("service_day must be a weekday name")
            return day
        return v


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: Optional[str] = None
    role: str
    employee_id: Optional[int] = None
    customer_id: Optional[int] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        employee_id=user.employee.id if user.employee else None,
        customer_id=user.customer.id if user.customer else None,
    )


def _token_response(user: User) -> TokenResponse:
    token = create_jwt_token({"sub": str(user.id), "role": user.role})
    return TokenResponse(access_token=token, user=_user_response(user))


def convert_pending_referrals(db: Session, user: User) -> int:
    """Mark pending referrals addressed to this email as converted"""
    referrals = (
        db.query(Referral)
        .filter(Referral.referred_email == user.email, Referral.status == "pending")
        .all()
    )
    for referral in referrals:
        referral.status = "converted"
        referral.referred_user_id = user.id
        referral.converted_at = datetime.utcnow()
        create_notification(
            db,
            referral.referrer_user_id,
            "referral_converted",
            "Your referral signed up!",
            f"{user.full_name or user.email} joined. Your ${referral.commission_amount:.2f} "
            f"commission is being processed.",
            {"referral_id": referral.id},
        )
    if referrals:
        logger.info(f"🎉 Converted {len(referrals)} referral(s) for {user.email}")
    return len(referrals)


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(data: RegisterRequest, db: Session = Depends(get_db)):
    """Create an employee or customer account and return an access token"""
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=400, detail="An account with this email already exists")

    try:
        user = User(
            email=data.email,
            full_name=data.full_name,
            hashed_password=hash_password(data.password),
            role=data.role,
        )
        db.add(user)
        db.flush()

        if data.role == "employee":
            db.add(Employee(user_id=user.id, phone=data.phone))
        else:
            db.add(
                Customer(
                    user_id=user.id,
                    phone=data.phone,
                    street=data.street,
                    city=data.city,
                    state=data.state.upper() if data.state else None,
                    zip_code=data.zip_code,
                    latitude=data.latitude,
                    longitude=data.longitude,
                    gate_code=data.gate_code,
                    service_day=data.service_day,
                )
            )

        convert_pending_referrals(db, user)
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Registration failed for {data.email}: {e}")
        raise HTTPException(status_code=500, detail="Registration failed") from e

    logger.info(f"✅ Registered {user.role} {user.email}")
    return _token_response(user)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == data.email.strip().lower()).first()
    if not user or not verify_password(data.password, user.hashed_password):
        logger.warning(f"⚠️ Failed login attempt for {data.email}")
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return _token_response(user)


@router.get("/me", response_model=UserResponse)
async def me(current_user: User = Depends(get_current_user)):
    return _user_response(current_user)
