from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, DECIMAL, JSON,
    Enum as SAEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from datetime import datetime, timezone

from backend.core.database import Base
from backend.models.enums import SubscriptionStatus, PlanInterval

class SubscriptionPlan(Base):
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    price = Column(DECIMAL(10, 2), nullable=False)
    currency = Column(String(10), nullable=False, default="INR")

    interval = Column(SAEnum(PlanInterval, name="plan_interval_enum", values_callable=lambda obj: [e.value for e in obj]),
                      nullable=False)
    interval_count = Column(Integer, nullable=False, default=1)
    trial_period_days = Column(Integer, nullable=False, default=0)
    features = Column(JSON, nullable=True) # List of feature labels shown on the pricing page

    is_active = Column(Boolean, default=True, nullable=False) # Admins can deactivate plans

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    subscriptions = relationship("Subscription", back_populates="plan")

    def __repr__(self):
        return f"<SubscriptionPlan(id={self.id}, name='{self.name}', price={self.price} {self.currency}, interval='{self.interval}')>"

class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("subscription_plans.id", ondelete="RESTRICT"), nullable=False) # Don't delete plan if users are subscribed

    status = Column(SAEnum(SubscriptionStatus, name="subscription_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=SubscriptionStatus.ACTIVE, index=True)

    current_period_start = Column(TIMESTAMP(timezone=True), nullable=False)
    current_period_end = Column(TIMESTAMP(timezone=True), nullable=False)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    cancelled_at = Column(TIMESTAMP(timezone=True), nullable=True)
    trial_start = Column(TIMESTAMP(timezone=True), nullable=True)
    trial_end = Column(TIMESTAMP(timezone=True), nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="subscriptions")
    plan = relationship("SubscriptionPlan", back_populates="subscriptions")
    payments = relationship("Payment", back_populates="subscription")

    def __repr__(self):
        return f"<Subscription(id={self.id}, user_id={self.user_id}, plan_id={self.plan_id}, status='{self.status}')>"

    def is_currently_active(self) -> bool:
        # A cancelled subscription keeps access until the paid period runs out
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.CANCELLED):
            return False
        period_end = self.current_period_end
        if period_end.tzinfo is None:
            period_end = period_end.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) < period_end
