from sqlalchemy.orm import Session, joinedload
from sqlalchemy import func # For count
from sqlalchemy.exc import IntegrityError
from typing import List, Optional, Dict, Any # For filters
import logging
from datetime import datetime, timezone

from backend.core.database import commit_or_rollback
from backend.models.subscription_model import SubscriptionPlan, Subscription
from backend.models.enums import SubscriptionStatus
from backend.schemas import subscription_schema as schemas # Alias for clarity

logger = logging.getLogger(__name__)


# Helper for applying filters to Subscription list queries
def _apply_subscription_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query
    if filters.get("user_id") is not None:
        query = query.filter(Subscription.user_id == filters["user_id"])
    if filters.get("plan_id") is not None:
        query = query.filter(Subscription.plan_id == filters["plan_id"])
    if filters.get("status") is not None:
        try:
            query = query.filter(Subscription.status == SubscriptionStatus(filters["status"]))
        except ValueError:
            logger.warning(f"Invalid status value '{filters['status']}' for filtering Subscriptions. Ignoring status filter.")
    return query

# --- SubscriptionPlan CRUD ---

def create_subscription_plan(db: Session, plan_in: schemas.SubscriptionPlanCreate) -> SubscriptionPlan:
    logger.info(f"Creating subscription plan: {plan_in.name}")
    db_plan = SubscriptionPlan(**plan_in.model_dump())
    db.add(db_plan)
    try:
        commit_or_rollback(db, db_plan)
    except IntegrityError:
        raise ValueError(f"A subscription plan named '{plan_in.name}' already exists.")
    logger.info(f"Subscription plan '{db_plan.name}' (ID: {db_plan.id}) created.")
    return db_plan

def get_subscription_plan(db: Session, plan_id: int) -> Optional[SubscriptionPlan]:
    logger.debug(f"Fetching subscription plan with ID: {plan_id}")
    return db.query(SubscriptionPlan).filter(SubscriptionPlan.id == plan_id).first()

def get_active_subscription_plans(db: Session) -> List[SubscriptionPlan]:
    """Plans open for new subscriptions, cheapest first."""
    return (
        db.query(SubscriptionPlan)
        .filter(SubscriptionPlan.is_active == True)
        .order_by(SubscriptionPlan.price.asc(), SubscriptionPlan.id.asc())
        .all()
    )

def update_subscription_plan(db: Session, db_plan: SubscriptionPlan, plan_in: schemas.SubscriptionPlanUpdate) -> SubscriptionPlan:
    update_data = plan_in.model_dump(exclude_unset=True)
    logger.debug(f"Updating plan ID {db_plan.id} with data: {update_data}")
    for field, value in update_data.items():
        setattr(db_plan, field, value)
    try:
        commit_or_rollback(db, db_plan)
    except IntegrityError:
        raise ValueError(f"A subscription plan named '{plan_in.name}' already exists.")
    logger.info(f"Subscription plan '{db_plan.name}' (ID: {db_plan.id}) updated.")
    return db_plan

# --- Subscription CRUD ---

def create_subscription(
    db: Session,
    user_id: int,
    plan_id: int,
    current_period_start: datetime,
    current_period_end: datetime,
    trial_start: Optional[datetime] = None,
    trial_end: Optional[datetime] = None,
) -> Subscription:
    db_subscription = Subscription(
        user_id=user_id,
        plan_id=plan_id,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=current_period_start,
        current_period_end=current_period_end,
        cancel_at_period_end=False,
        trial_start=trial_start,
        trial_end=trial_end,
    )
    db.add(db_subscription)
    commit_or_rollback(db, db_subscription)
    logger.info(
        f"Subscription {db_subscription.id} created for user {user_id} on plan {plan_id}: "
        f"{current_period_start.isoformat()} -> {current_period_end.isoformat()}."
    )
    return db_subscription

def get_subscription(db: Session, subscription_id: int) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .options(joinedload(Subscription.plan))
        .filter(Subscription.id == subscription_id)
        .first()
    )

def get_user_subscriptions(db: Session, user_id: int) -> List[Subscription]:
    return (
        db.query(Subscription)
        .options(joinedload(Subscription.plan))
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .all()
    )

def get_active_user_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
        .order_by(Subscription.current_period_end.desc())
        .first()
    )

def cancel_subscription(db: Session, db_subscription: Subscription) -> Subscription:
    """Status flag only; access continues until current_period_end."""
    db_subscription.status = SubscriptionStatus.CANCELLED
    db_subscription.cancelled_at = datetime.now(timezone.utc)
    db_subscription.cancel_at_period_end = True
    commit_or_rollback(db, db_subscription)
    logger.info(f"Subscription {db_subscription.id} cancelled; active until {db_subscription.current_period_end}.")
    return db_subscription

# --- Admin listing ---

def get_all_subscriptions(db: Session, skip: int = 0, limit: int = 50, filters: Optional[Dict[str, Any]] = None) -> List[Subscription]:
    query = _apply_subscription_filters(db.query(Subscription).options(joinedload(Subscription.plan)), filters)
    return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).offset(skip).limit(limit).all()

def count_all_subscriptions(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    query = _apply_subscription_filters(db.query(func.count(Subscription.id)), filters)
    return query.scalar() or 0
