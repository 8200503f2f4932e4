from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from backend.models.enums import CourseLevel, LessonType, EnrollmentStatus

# --- Category Schemas ---
class CategoryBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = None
    image: Optional[str] = Field(None, max_length=500)

class CategoryCreate(CategoryBase):
    pass

class CategoryDisplay(CategoryBase):
    id: int
    slug: str
    is_active: bool

    class Config:
        from_attributes = True

# --- Lesson Schemas ---
class LessonBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255, description="Title of the lesson")
    description: Optional[str] = None
    type: LessonType = Field(..., description="video, text, quiz, assignment or live")
    content: Optional[str] = Field(None, description="Body for text lessons")
    video_url: Optional[str] = Field(None, max_length=500)
    duration: Optional[int] = Field(None, gt=0, description="Duration in minutes")
    order: int = Field(..., ge=1, description="Position of the lesson within its module")
    is_preview: bool = Field(False, description="Visible to users who are not enrolled")

class LessonCreate(LessonBase):
    pass

class LessonUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    type: Optional[LessonType] = None
    content: Optional[str] = None
    video_url: Optional[str] = Field(None, max_length=500)
    duration: Optional[int] = Field(None, gt=0)
    order: Optional[int] = Field(None, ge=1)
    is_preview: Optional[bool] = None

class LessonDisplay(LessonBase):
    id: int
    module_id: int
    created_at: datetime

    class Config:
        from_attributes = True

# --- CourseModule Schemas ---
class CourseModuleBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255, description="Title of the module")
    description: Optional[str] = None
    order: int = Field(..., ge=1, description="Order of the module within the course")

class CourseModuleCreate(CourseModuleBase):
    pass

class CourseModuleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)

class CourseModuleDisplay(CourseModuleBase):
    id: int
    course_id: int
    lessons: List[LessonDisplay] = []
    created_at: datetime

    class Config:
        from_attributes = True

# --- Course Schemas ---
class CourseBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255, description="Title of the course")
    description: Optional[str] = Field(None, description="Detailed description of the course")
    short_description: Optional[str] = Field(None, max_length=500)
    thumbnail: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(..., ge=0, description="List price")
    discount_price: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("INR", max_length=10)
    duration: Optional[int] = Field(None, gt=0, description="Total duration in hours")
    level: CourseLevel = Field(..., description="Difficulty level of the course")
    language: str = Field("English", max_length=50)
    requirements: List[str] = Field(default_factory=list)
    learning_outcomes: List[str] = Field(default_factory=list)
    category_id: Optional[int] = None

class CourseCreate(CourseBase):
    # instructor_id is taken from the authenticated user in the route
    pass

class CourseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = Field(None, max_length=500)
    thumbnail: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, ge=0)
    discount_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=10)
    duration: Optional[int] = Field(None, gt=0)
    level: Optional[CourseLevel] = None
    language: Optional[str] = Field(None, max_length=50)
    requirements: Optional[List[str]] = None
    learning_outcomes: Optional[List[str]] = None
    category_id: Optional[int] = None

class InstructorRef(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None

    class Config:
        from_attributes = True

class CourseDisplay(CourseBase):
    id: int
    slug: str
    instructor_id: Optional[int] = None
    instructor: Optional[InstructorRef] = None
    is_published: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class CourseDetailDisplay(CourseDisplay):
    modules: List[CourseModuleDisplay] = []
    category: Optional[CategoryDisplay] = None

class PaginatedCourseList(BaseModel):
    total: int
    items: List[CourseDisplay]
    page: int
    size: int

# --- Enrollment Schemas ---
class EnrollmentProgressUpdate(BaseModel):
    progress: int = Field(..., ge=0, le=100, description="Completion percentage")

class EnrollmentDisplay(BaseModel):
    id: int
    user_id: int
    course_id: int
    status: EnrollmentStatus
    progress: int
    enrolled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    certificate_issued: bool

    class Config:
        from_attributes = True

class LessonProgressUpdate(BaseModel):
    watch_time: int = Field(0, ge=0, description="Seconds watched since the last update")
    completed: bool = False

class LessonProgressDisplay(BaseModel):
    lesson_id: int
    user_id: int
    is_completed: bool
    watch_time: int
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
