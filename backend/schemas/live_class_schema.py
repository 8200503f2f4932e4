from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import datetime

from backend.models.enums import LiveClassPlatform, LiveClassStatus

class LiveClassBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    scheduled_at: datetime = Field(..., description="Start time; naive values are treated as UTC")
    duration: int = Field(..., gt=0, description="Duration in minutes")
    max_attendees: Optional[int] = Field(None, gt=0)

class LiveClassCreate(LiveClassBase):
    course_id: int
    platform: LiveClassPlatform
    meeting_url: Optional[str] = Field(None, max_length=500, description="Required for custom platforms")

    @model_validator(mode="after")
    def check_custom_meeting_url(self):
        if self.platform == LiveClassPlatform.CUSTOM and not self.meeting_url:
            raise ValueError("meeting_url is required for custom live classes")
        return self

class LiveClassUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0)
    max_attendees: Optional[int] = Field(None, gt=0)
    meeting_url: Optional[str] = Field(None, max_length=500)
    recording_url: Optional[str] = Field(None, max_length=500)

class LiveClassDisplay(LiveClassBase):
    id: int
    course_id: int
    instructor_id: int
    platform: LiveClassPlatform
    meeting_url: Optional[str] = None
    meeting_id: Optional[str] = None
    meeting_password: Optional[str] = None
    calendar_link: Optional[str] = None
    recording_url: Optional[str] = None
    status: LiveClassStatus
    created_at: datetime

    class Config:
        from_attributes = True

class LiveClassHostDisplay(LiveClassDisplay):
    """Includes the host link; only returned to the instructor or an admin."""
    start_url: Optional[str] = None
