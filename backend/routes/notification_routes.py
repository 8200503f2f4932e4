from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Dict
import logging

from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_current_admin_user
from backend.crud import notification_crud
from backend.models.user_model import User
from backend.schemas.analytics_schema import NotificationCreate, NotificationDisplay, NotificationList

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/notifications", tags=["Notifications"])

@router.get("/", response_model=NotificationList)
def read_my_notifications(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Newest notifications for the caller, with the total unread count."""
    notifications, unread_count = notification_crud.get_user_notifications(db, current_user.id, limit=limit)
    return NotificationList(
        notifications=[NotificationDisplay.model_validate(n) for n in notifications],
        unread_count=unread_count,
    )

@router.post("/read-all", response_model=Dict[str, int])
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    updated = notification_crud.mark_all_notifications_read(db, current_user.id)
    return {"updated": updated}

@router.post("/{notification_id}/read", response_model=NotificationDisplay)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return notification_crud.mark_notification_read(db, notification_id, current_user.id)

@router.post("/", response_model=NotificationDisplay, status_code=status.HTTP_201_CREATED)
def send_notification(
    notification_in: NotificationCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: send a notification to a user."""
    logger.info(f"Admin {current_admin.email} notifying user {notification_in.user_id}")
    return notification_crud.create_notification(db, notification_in)
