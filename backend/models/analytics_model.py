from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, JSON, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.core.database import Base
from backend.models.enums import NotificationType, NotificationCategory

class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    session_id = Column(String(255), nullable=True)
    event_type = Column(String(100), nullable=False, index=True) # page_view, view_course, view_lesson, search, ...
    event_category = Column(String(100), nullable=False, default="general")
    event_action = Column(String(100), nullable=False)
    event_label = Column(String(255), nullable=True)
    event_value = Column(Integer, nullable=True)
    # Denormalised from properties so the engagement queries can group without JSON operators
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="SET NULL"), nullable=True, index=True)
    lesson_id = Column(Integer, ForeignKey("lessons.id", ondelete="SET NULL"), nullable=True, index=True)
    search_query = Column(String(255), nullable=True)
    properties = Column(JSON, nullable=True)
    page = Column(String(500), nullable=True)
    referrer = Column(String(500), nullable=True)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(64), nullable=True)
    timestamp = Column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<AnalyticsEvent(id={self.id}, type='{self.event_type}', user_id={self.user_id})>"

class UserActivity(Base):
    __tablename__ = "user_activity"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_type = Column(String(100), nullable=False, index=True) # login, session, course_enroll, lesson_view, ...
    description = Column(Text, nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    timestamp = Column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<UserActivity(id={self.id}, user_id={self.user_id}, type='{self.activity_type}')>"

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(SAEnum(NotificationType, name="notification_type_enum", values_callable=lambda obj: [e.value for e in obj]),
                  nullable=False, default=NotificationType.INFO)
    category = Column(SAEnum(NotificationCategory, name="notification_category_enum", values_callable=lambda obj: [e.value for e in obj]),
                      nullable=False, default=NotificationCategory.SYSTEM)
    is_read = Column(Boolean, nullable=False, default=False, index=True)
    action_url = Column(String(500), nullable=True)
    metadata_ = Column("metadata", JSON, nullable=True)
    expires_at = Column(TIMESTAMP(timezone=True), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="notifications")

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, read={self.is_read})>"
