"""
Unified Notification Service
Persists in-app notifications for booking, billing and subscription events.

Sending is best-effort: it runs after the business transaction has committed
and a failure here is logged, never raised to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..config import FRONTEND_URL
from ..models_notification import Notification

logger = logging.getLogger(__name__)


def build_link(path: str) -> str:
    return f"{FRONTEND_URL.rstrip('/')}/{path.lstrip('/')}"


def send_notification(
    db: Session,
    user_id: int,
    notification_type: str,
    title: str,
    message: str,
    link: Optional[str] = None,
) -> Optional[Notification]:
    """
    Store a notification for a user.

    Args:
        db: Database session (any pending business writes must already be committed)
        user_id: Recipient
        notification_type: charge, payment, session, booking, class, subscription, system
        title: Short title
        message: Body text
        link: Optional frontend path or URL

    Returns:
        The stored notification, or None when sending failed
    """
    try:
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=title,
            message=message,
            link=link,
        )
        db.add(notification)
        db.commit()
        logger.info(f"Sent {notification_type} notification to user {user_id}: {title}")
        return notification
    except Exception as e:
        logger.error(f"Failed to send {notification_type} notification to user {user_id}: {e}")
        try:
            db.rollback()
        except Exception as rollback_error:
            logger.error(f"Rollback after notification failure also failed: {rollback_error}")
        return None


def booking_created_message(resource_label: str, amount) -> str:
    if amount:
        return f"{resource_label} reserved. A charge of {amount} is pending payment."
    return f"{resource_label} reserved."


def booking_cancelled_message(resource_label: str, charge_cancelled: bool) -> str:
    if charge_cancelled:
        return f"Your reservation for {resource_label} was cancelled, along with its pending charge."
    return f"Your reservation for {resource_label} was cancelled."
