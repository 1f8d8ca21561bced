import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session, joinedload

from .database import get_db
from .models import Customer, Employee, User
from .security_utils import verify_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the user behind the bearer token"""

    if not credentials:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated. Please provide a valid Bearer token in the Authorization header.",
        )

    token = credentials.credentials
    if len(token.split(".")) != 3:
        logger.warning(f"⚠️ Malformed token received, length: {len(token)}")
        raise HTTPException(
            status_code=401, detail="Invalid token format. Expected a valid JWT token."
        )

    payload = verify_jwt_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        logger.error(f"❌ Token missing user ID claim. Available claims: {list(payload.keys())}")
        raise HTTPException(status_code=401, detail="Invalid token claims")

    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token claims") from None

    user = (
        db.query(User)
        .options(joinedload(User.employee), joinedload(User.customer))
        .filter(User.id == user_id)
        .first()
    )
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="User not found or inactive")

    logger.debug(f"✅ User authenticated: {user.email} ({user.role})")
    return user


def require_role(*roles: str):
    """Dependency factory restricting a route to the given roles"""

    async def _check_role(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(f"⚠️ User {user.email} ({user.role}) denied access, requires {roles}")
            raise HTTPException(status_code=403, detail="You do not have access to this resource")
        return user

    return _check_role


get_current_admin = require_role("admin")


async def get_current_employee(user: User = Depends(require_role("employee"))) -> Employee:
    if not user.employee:
        raise HTTPException(status_code=404, detail="Employee record not found")
    return user.employee


async def get_current_customer(user: User = Depends(require_role("customer"))) -> Customer:
    if not user.customer:
        raise HTTPException(status_code=404, detail="Customer record not found")
    return user.customer
