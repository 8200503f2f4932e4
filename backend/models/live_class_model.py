from sqlalchemy import Column, Integer, String, Text, ForeignKey, TIMESTAMP, Enum as SAEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.core.database import Base
from backend.models.enums import LiveClassPlatform, LiveClassStatus

class LiveClass(Base):
    __tablename__ = "live_classes"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    instructor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    scheduled_at = Column(TIMESTAMP(timezone=True), nullable=False, index=True)
    duration = Column(Integer, nullable=False) # Minutes

    platform = Column(SAEnum(LiveClassPlatform, name="live_class_platform_enum", values_callable=lambda obj: [e.value for e in obj]),
                      nullable=False)
    meeting_url = Column(String(500), nullable=True)
    meeting_id = Column(String(255), nullable=True) # Zoom meeting id or Google Calendar event id
    start_url = Column(String(1000), nullable=True) # Host link (Zoom only)
    meeting_password = Column(String(64), nullable=True)
    calendar_link = Column(String(500), nullable=True)
    recording_url = Column(String(500), nullable=True)

    status = Column(SAEnum(LiveClassStatus, name="live_class_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=LiveClassStatus.SCHEDULED, index=True)
    max_attendees = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    course = relationship("Course", back_populates="live_classes")
    instructor = relationship("User")

    def __repr__(self):
        return f"<LiveClass(id={self.id}, title='{self.title}', platform='{self.platform}', status='{self.status}')>"
