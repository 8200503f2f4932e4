from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from decimal import Decimal # For price

from backend.models.enums import SubscriptionStatus, PlanInterval, PaymentMethod
from .payment_schema import CreateOrderResponse

# --- SubscriptionPlan Schemas ---
class SubscriptionPlanBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=100, description="Name of the subscription plan")
    description: Optional[str] = Field(None, max_length=1000, description="Detailed description of the plan")
    price: Decimal = Field(..., gt=0, description="Price of one billing period")
    currency: str = Field("INR", max_length=10, description="Currency code")
    interval: PlanInterval = Field(..., description="monthly, quarterly or yearly")
    interval_count: int = Field(1, ge=1, description="Number of intervals per billing period")
    trial_period_days: int = Field(0, ge=0, description="Free trial length in days")
    features: List[str] = Field(default_factory=list)
    is_active: bool = Field(True, description="Whether the plan is available for new subscriptions")

class SubscriptionPlanCreate(SubscriptionPlanBase):
    pass

class SubscriptionPlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, gt=0)
    currency: Optional[str] = Field(None, max_length=10)
    interval: Optional[PlanInterval] = None
    interval_count: Optional[int] = Field(None, ge=1)
    trial_period_days: Optional[int] = Field(None, ge=0)
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None

class SubscriptionPlanDisplay(SubscriptionPlanBase):
    id: int
    created_at: datetime

    class Config:
        from_attributes = True

# --- Subscription Schemas ---
class SubscriptionCreate(BaseModel): # Schema for initiating a subscription by user
    plan_id: int = Field(..., description="ID of the chosen subscription plan")
    payment_method: PaymentMethod = Field(..., description="Gateway used for the initial payment")

class SubscriptionDisplay(BaseModel):
    id: int
    user_id: int
    plan_id: int
    status: SubscriptionStatus
    current_period_start: datetime
    current_period_end: datetime
    cancel_at_period_end: bool
    cancelled_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    plan: SubscriptionPlanDisplay # Nested display of the plan details
    created_at: datetime

    class Config:
        from_attributes = True

class SubscriptionCreateResponse(BaseModel):
    subscription: SubscriptionDisplay
    # Present when the plan has no trial and the first period must be paid now
    payment_order: Optional[CreateOrderResponse] = None
