from sqlalchemy.orm import Session
from sqlalchemy import func
from typing import List, Optional, Tuple
import logging

from backend.core.database import commit_or_rollback
from backend.core.exceptions import ResourceNotFoundError
from backend.models.analytics_model import Notification
from backend.models.enums import NotificationType
from backend.schemas.analytics_schema import NotificationCreate

logger = logging.getLogger(__name__)

def create_notification(db: Session, notification_in: NotificationCreate) -> Notification:
    try:
        notification_type = NotificationType(notification_in.type)
    except ValueError:
        logger.debug(f"Unknown notification type '{notification_in.type}', storing as 'info'.")
        notification_type = NotificationType.INFO

    db_notification = Notification(
        user_id=notification_in.user_id,
        title=notification_in.title,
        message=notification_in.message,
        type=notification_type,
        category=notification_in.category,
        action_url=notification_in.action_url,
        expires_at=notification_in.expires_at,
        is_read=False,
    )
    db.add(db_notification)
    commit_or_rollback(db, db_notification)
    logger.info(f"Notification {db_notification.id} ({notification_type.value}) created for user {db_notification.user_id}.")
    return db_notification

def get_notification(db: Session, notification_id: int) -> Optional[Notification]:
    return db.query(Notification).filter(Notification.id == notification_id).first()

def mark_notification_read(db: Session, notification_id: int, user_id: int) -> Notification:
    """Only the recipient may mark a notification as read. Raises ResourceNotFoundError otherwise."""
    db_notification = db.query(Notification).filter(
        Notification.id == notification_id, Notification.user_id == user_id
    ).first()
    if db_notification is None:
        raise ResourceNotFoundError(f"Notification {notification_id} not found.")
    if not db_notification.is_read:
        db_notification.is_read = True
        commit_or_rollback(db, db_notification)
    return db_notification

def mark_all_notifications_read(db: Session, user_id: int) -> int:
    updated = db.query(Notification).filter(
        Notification.user_id == user_id, Notification.is_read == False
    ).update({Notification.is_read: True}, synchronize_session="fetch")
    commit_or_rollback(db)
    logger.info(f"Marked {updated} notifications read for user {user_id}.")
    return updated

def get_user_notifications(db: Session, user_id: int, limit: int = 20) -> Tuple[List[Notification], int]:
    """Newest first, plus the user's total unread count."""
    notifications = (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )
    unread_count = db.query(func.count(Notification.id)).filter(
        Notification.user_id == user_id, Notification.is_read == False
    ).scalar() or 0
    return notifications, unread_count
