from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_current_admin_user
from backend.crud import subscription_crud as sub_crud
from backend.models.enums import SubscriptionStatus, UserRole
from backend.models.user_model import User
from backend.schemas import subscription_schema as sub_schemas
from backend.services import payment_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/subscriptions", tags=["Subscriptions"])

# --- Admin Subscription Plan Management ---
@router.post("/plans", response_model=sub_schemas.SubscriptionPlanDisplay, status_code=status.HTTP_201_CREATED)
def create_new_subscription_plan(
    plan_in: sub_schemas.SubscriptionPlanCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: Create a new subscription plan."""
    logger.info(f"Admin {current_admin.email} creating subscription plan: {plan_in.name}")
    return sub_crud.create_subscription_plan(db, plan_in)

@router.put("/plans/{plan_id}", response_model=sub_schemas.SubscriptionPlanDisplay)
def update_existing_subscription_plan(
    plan_id: int,
    plan_in: sub_schemas.SubscriptionPlanUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: Update an existing subscription plan."""
    logger.info(f"Admin {current_admin.email} updating subscription plan ID: {plan_id}")
    db_plan = sub_crud.get_subscription_plan(db, plan_id)
    if not db_plan:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subscription plan not found.")
    return sub_crud.update_subscription_plan(db, db_plan, plan_in)

@router.get("/plans", response_model=List[sub_schemas.SubscriptionPlanDisplay])
def list_active_subscription_plans(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Plans currently open for new subscriptions."""
    return sub_crud.get_active_subscription_plans(db)

# --- User Subscription Management ---
@router.post("/", response_model=sub_schemas.SubscriptionCreateResponse, status_code=status.HTTP_201_CREATED)
def subscribe_to_plan(
    subscription_in: sub_schemas.SubscriptionCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Start a subscription. Plans without a trial return the payment order for the
    first period, which is completed through /payments/verify.
    """
    if sub_crud.get_active_user_subscription(db, current_user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User already has an active subscription.")
    logger.info(f"User {current_user.email} subscribing to plan {subscription_in.plan_id}")
    return payment_service.create_subscription(
        db, current_user, subscription_in.plan_id, subscription_in.payment_method
    )

@router.get("/me", response_model=List[sub_schemas.SubscriptionDisplay])
def read_my_subscriptions(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return sub_crud.get_user_subscriptions(db, current_user.id)

@router.get("/me/active", response_model=Optional[sub_schemas.SubscriptionDisplay])
def read_my_active_subscription(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return sub_crud.get_active_user_subscription(db, current_user.id)

@router.post("/{subscription_id}/cancel", response_model=sub_schemas.SubscriptionDisplay)
def cancel_my_subscription(
    subscription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Cancel a subscription. Users cancel their own; admins may cancel any."""
    owner = None if current_user.role == UserRole.ADMIN else current_user
    logger.info(f"User {current_user.email} cancelling subscription {subscription_id}")
    return payment_service.cancel_subscription(db, subscription_id, user=owner)

@router.get("/", response_model=List[sub_schemas.SubscriptionDisplay])
def admin_list_subscriptions(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    user_id: Optional[int] = Query(None),
    subscription_status: Optional[SubscriptionStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: all subscriptions with optional filters."""
    filters = {"user_id": user_id, "status": subscription_status.value if subscription_status else None}
    active_filters = {k: v for k, v in filters.items() if v is not None}
    return sub_crud.get_all_subscriptions(db, skip=skip, limit=limit, filters=active_filters)
