"""
In-app notification service
Writes Notification rows for workflow events (claims, completions, payouts, alerts)
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import Notification, User

logger = logging.getLogger(__name__)


def create_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> Notification:
    """
    Add a notification for one user. The caller owns the transaction.

    Args:
        db: Database session
        user_id: Recipient user ID
        notification_type: e.g. service_claimed, payout_completed
        title: Short headline
        message: Body text
        data: Optional payload for deep links (service_id, payout_id, ...)
    """
    notification = Notification(
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(notification)
    logger.debug(f"🔔 Queued {notification_type} notification for user {user_id}")
    return notification


def notify_admins(
    db: Session,
    notification_type: str,
    title: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
) -> int:
    """Notify every active admin, returns the number of notifications created"""
    admins = db.query(User).filter(User.role == "admin", User.is_active.is_(True)).all()
    for admin in admins:
        create_notification(db, admin.id, notification_type, title, message, data)

    if admins:
        logger.info(f"🔔 Notified {len(admins)} admin(s): {title}")
    else:
        logger.warning(f"⚠️ No active admins to notify: {title}")
    return len(admins)
