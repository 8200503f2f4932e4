from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from pydantic import BaseModel

from backend.core.database import get_db
from backend.core.dependencies import get_current_admin_user, get_user_or_404
from backend.crud import payment_crud, user_crud as crud
from backend.models.enums import UserRole, WebhookStatus
from backend.models.user_model import User
from backend.schemas import user_schema as schemas
from backend.schemas.payment_schema import PaymentWebhookDisplay

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["Admin Panel"])

# --- User Management by Admin ---

class PaginatedUsersAdmin(BaseModel):
    total: int
    users: List[schemas.UserDisplay]
    page: int
    size: int

@router.get("/users", response_model=PaginatedUsersAdmin)
def admin_list_users(
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user),
    skip: int = Query(0, ge=0, alias="page_offset"),
    limit: int = Query(20, ge=1, le=200, alias="page_size"),
    email_contains: Optional[str] = Query(None),
    role: Optional[UserRole] = Query(None),
    tenant_id: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None)
):
    """
    Admin: Get a list of all users with pagination and optional filters.
    """
    logger.info(f"Admin {current_admin.email} listing users. Skip: {skip}, Limit: {limit}")

    filters = {
        "email_contains": email_contains,
        "role": role,
        "tenant_id": tenant_id,
        "is_active": is_active,
    }
    active_filters = {k: v for k, v in filters.items() if v is not None}

    total_users = crud.count_users(db, filters=active_filters)
    users_db = crud.get_users(db, skip=skip, limit=limit, filters=active_filters)

    return PaginatedUsersAdmin(
        total=total_users,
        users=[schemas.UserDisplay.model_validate(user) for user in users_db],
        page=(skip // limit) + 1,
        size=limit
    )

@router.get("/users/{user_id}", response_model=schemas.UserDisplay)
def admin_get_user(user: User = Depends(get_user_or_404), current_admin: User = Depends(get_current_admin_user)):
    return user

@router.put("/users/{user_id}", response_model=schemas.UserDisplay)
def admin_update_user(
    user_id: int,
    user_in: schemas.AdminUserUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: change a user's role, activation flag or tenant.
    """
    if user_id == current_admin.id and user_in.is_active is False:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot deactivate themselves.")
    logger.info(f"Admin {current_admin.email} updating user ID: {user_id}")
    updated_user = crud.update_user_by_admin(db, user_id=user_id, data_in=user_in)
    if not updated_user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return updated_user

# --- Payment webhook log ---
@router.get("/webhooks", response_model=List[PaymentWebhookDisplay])
def admin_list_webhooks(
    webhook_status: Optional[WebhookStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: inbound gateway callbacks, newest first. Failed ones carry the processing error."""
    return payment_crud.get_webhook_records(db, status=webhook_status, skip=skip, limit=limit)
