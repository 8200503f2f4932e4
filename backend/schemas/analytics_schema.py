from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import date, datetime # For date/datetime fields
from decimal import Decimal # For monetary values

from backend.models.enums import NotificationType, NotificationCategory, PaymentMethod

class DateRange(BaseModel):
    start: datetime
    end: datetime

# --- Tracking ---
class AnalyticsEventCreate(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100, description="e.g. page_view, view_course, view_lesson, search")
    event_category: Optional[str] = Field(None, max_length=100)
    event_action: Optional[str] = Field(None, max_length=100, description="Defaults to event_type")
    event_label: Optional[str] = Field(None, max_length=255)
    event_value: Optional[int] = None
    course_id: Optional[int] = None
    lesson_id: Optional[int] = None
    search_query: Optional[str] = Field(None, max_length=255)
    session_id: Optional[str] = Field(None, max_length=255)
    page: Optional[str] = Field(None, max_length=500)
    referrer: Optional[str] = Field(None, max_length=500)
    properties: Dict[str, Any] = Field(default_factory=dict)

class UserActivityCreate(BaseModel):
    activity_type: str = Field(..., min_length=1, max_length=100, description="e.g. login, session, lesson_view")
    resource_id: Optional[str] = Field(None, max_length=100)
    resource_type: Optional[str] = Field(None, max_length=100)
    details: Dict[str, Any] = Field(default_factory=dict)

class TrackResponse(BaseModel):
    success: bool = True
    id: int

# --- Platform Overview ---
class EnrollmentStats(BaseModel):
    total_enrollments: int = 0
    total_courses: int = 0
    total_students: int = 0

class RevenueTotals(BaseModel):
    total_revenue: Decimal = Decimal("0.00")
    transactions: int = 0

class AnalyticsOverview(BaseModel):
    active_users: int = Field(..., description="Distinct users with recorded activity in the range")
    enrollments: EnrollmentStats
    completion_rate: float = Field(..., ge=0, le=100, description="Completed enrollments as a percentage, 2 decimals")
    revenue: RevenueTotals
    date_range: DateRange

# --- Course Analytics ---
class CourseEnrollmentStats(BaseModel):
    total: int = 0
    completed: int = 0
    active: int = 0
    avg_progress: float = 0.0

class CourseRevenueStats(BaseModel):
    total: Decimal = Decimal("0.00")
    count: int = 0

class LessonStats(BaseModel):
    total_lessons: int = 0
    completed_lessons: int = 0
    avg_watch_time: float = 0.0

class DailyCount(BaseModel):
    date: date
    count: int

class CourseAnalytics(BaseModel):
    course_id: int
    course_title: str
    enrollments: CourseEnrollmentStats
    revenue: CourseRevenueStats
    lesson_stats: LessonStats
    enrollment_trend: List[DailyCount]
    date_range: DateRange

# --- Learner Analytics ---
class LearnerEnrollment(BaseModel):
    enrollment_id: int
    course_id: int
    course_title: str
    status: str
    progress: int
    enrolled_at: Optional[datetime] = None

class StudyTime(BaseModel):
    total_time: int = Field(0, description="Seconds")
    sessions_count: int = 0

class DailyLearning(BaseModel):
    date: date
    watch_time: int
    lessons_completed: int

class LearnerCompletionStats(BaseModel):
    total: int = 0
    completed: int = 0
    in_progress: int = 0
    avg_progress: float = 0.0

class UserLearningAnalytics(BaseModel):
    user_id: int
    enrollments: List[LearnerEnrollment]
    study_time: StudyTime
    learning_activity: List[DailyLearning]
    completion_stats: LearnerCompletionStats
    date_range: DateRange

# --- Revenue Reporting ---
class RevenueOverview(BaseModel):
    total_revenue: Decimal = Decimal("0.00")
    total_transactions: int = 0
    avg_order_value: Decimal = Decimal("0.00")

class RevenueDataPoint(BaseModel):
    date: date
    revenue: Decimal
    transactions: int

class RevenueByMethod(BaseModel):
    method: PaymentMethod
    revenue: Decimal
    transactions: int

class RevenueByCourse(BaseModel):
    course_id: Optional[int] = None
    course_title: Optional[str] = None
    revenue: Decimal
    transactions: int

class RevenueAnalytics(BaseModel):
    overview: RevenueOverview
    trend: List[RevenueDataPoint]
    by_method: List[RevenueByMethod]
    by_course: List[RevenueByCourse]
    date_range: DateRange

# --- Engagement ---
class SessionStats(BaseModel):
    total_sessions: int = 0
    unique_users: int = 0

class TopItem(BaseModel):
    id: Optional[int] = None
    title: Optional[str] = None
    views: int
    unique_users: int

class SearchTerm(BaseModel):
    term: str
    count: int

class EngagementAnalytics(BaseModel):
    session_stats: SessionStats
    daily_active_users: List[DailyCount]
    active_courses: List[TopItem]
    active_lessons: List[TopItem]
    search_terms: List[SearchTerm]
    date_range: DateRange

class AnalyticsExport(BaseModel):
    export_type: str
    export_data: Dict[str, Any]
    export_date: datetime
    download_url: str

# --- Notifications ---
class NotificationCreate(BaseModel):
    user_id: int
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    # Free text so unknown values can fall back to "info" instead of failing validation
    type: str = Field("info", max_length=20)
    category: NotificationCategory = NotificationCategory.SYSTEM
    action_url: Optional[str] = Field(None, max_length=500)
    expires_at: Optional[datetime] = None

class NotificationDisplay(BaseModel):
    id: int
    user_id: int
    title: str
    message: str
    type: NotificationType
    category: NotificationCategory
    is_read: bool
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class NotificationList(BaseModel):
    notifications: List[NotificationDisplay]
    unread_count: int
