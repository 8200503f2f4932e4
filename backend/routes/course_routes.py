from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from backend.core.database import get_db
from backend.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_current_instructor_or_admin,
    get_course_owner_or_admin,
    get_module_owner_or_admin,
    get_lesson_owner_or_admin,
    get_course_or_404,
    get_lesson_or_404,
    is_owner_or_admin,
)
from backend.models.user_model import User
from backend.models.course_model import Course, CourseModule, Lesson
from backend.models.enums import CourseLevel, UserRole
from backend.schemas import course_schema as schemas
from backend.crud import course_crud as crud

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/courses", tags=["Courses & Learning Content"])

def _effective_price(course: Course):
    return course.discount_price if course.discount_price is not None else course.price

# --- Category Endpoints ---
@router.get("/categories", response_model=List[schemas.CategoryDisplay])
def read_categories(db: Session = Depends(get_db)):
    return crud.get_categories(db)

@router.post("/categories", response_model=schemas.CategoryDisplay, status_code=status.HTTP_201_CREATED)
def create_new_category(
    category_in: schemas.CategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_admin_user)
):
    """Create a course category. (Admin only)"""
    logger.info(f"Admin {current_user.email} creating category: {category_in.name}")
    return crud.create_category(db, category_in)

# --- Course Endpoints ---
@router.post("/", response_model=schemas.CourseDisplay, status_code=status.HTTP_201_CREATED)
def create_new_course(
    course_in: schemas.CourseCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """
    Create a new course owned by the calling instructor. (Instructor or Admin)
    New courses start unpublished.
    """
    if course_in.category_id is not None and crud.get_category(db, course_in.category_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Category with ID {course_in.category_id} not found.")
    logger.info(f"User {current_user.email} creating course: {course_in.title}")
    return crud.create_course(db=db, course_in=course_in, instructor_id=current_user.id)

@router.get("/", response_model=schemas.PaginatedCourseList)
def read_published_courses(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    category_id: Optional[int] = Query(None),
    level: Optional[CourseLevel] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Catalogue of published courses, newest first."""
    items, total = crud.get_published_courses(
        db,
        skip=(page - 1) * size,
        limit=size,
        category_id=category_id,
        level=level.value if level else None,
        search=search,
    )
    return schemas.PaginatedCourseList(
        total=total,
        items=[schemas.CourseDisplay.model_validate(course) for course in items],
        page=page,
        size=size,
    )

@router.get("/mine", response_model=List[schemas.CourseDisplay])
def read_my_courses(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """Courses taught by the calling instructor, published or not."""
    return crud.get_courses_by_instructor(db, current_user.id)

@router.get("/enrollments/me", response_model=List[schemas.EnrollmentDisplay])
def read_my_enrollments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return crud.get_user_enrollments(db, current_user.id)

@router.get("/{course_id}", response_model=schemas.CourseDetailDisplay)
def read_single_course(
    course_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Course with its modules and lessons. Unpublished courses are only visible
    to their instructor and admins.
    """
    course = crud.get_course_with_modules(db, course_id)
    if not course or not (course.is_published or is_owner_or_admin(current_user, course.instructor_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course_id} not found.")
    return course

@router.put("/{course_id}", response_model=schemas.CourseDisplay)
def update_existing_course(
    course_in: schemas.CourseUpdate,
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Update an existing course. (Owner or Admin only)"""
    logger.info(f"Updating course ID {course.id} (Title: {course.title})")
    return crud.update_course(db=db, db_course=course, course_in=course_in)

@router.delete("/{course_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_course(
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Delete an existing course with its modules and lessons. (Owner or Admin only)"""
    logger.info(f"Deleting course ID {course.id} (Title: {course.title})")
    crud.delete_course(db=db, db_course=course)

@router.post("/{course_id}/publish", response_model=schemas.CourseDisplay)
def publish_course(course: Course = Depends(get_course_owner_or_admin), db: Session = Depends(get_db)):
    return crud.set_course_published(db, course, True)

@router.post("/{course_id}/unpublish", response_model=schemas.CourseDisplay)
def unpublish_course(course: Course = Depends(get_course_owner_or_admin), db: Session = Depends(get_db)):
    return crud.set_course_published(db, course, False)

# --- CourseModule Endpoints ---
@router.post("/{course_id}/modules", response_model=schemas.CourseModuleDisplay, status_code=status.HTTP_201_CREATED)
def create_new_module_for_course(
    module_in: schemas.CourseModuleCreate,
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Create a new module for a course. (Owner or Admin of course only)"""
    logger.info(f"Creating module '{module_in.title}' for course ID {course.id}")
    return crud.create_course_module(db=db, module_in=module_in, course_id=course.id)

@router.get("/{course_id}/modules", response_model=List[schemas.CourseModuleDisplay])
def read_modules_for_course(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    if not (course.is_published or is_owner_or_admin(current_user, course.instructor_id)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course.id} not found.")
    return crud.get_modules_for_course(db, course.id)

@router.put("/modules/{module_id}", response_model=schemas.CourseModuleDisplay)
def update_existing_module(
    module_in: schemas.CourseModuleUpdate,
    module: CourseModule = Depends(get_module_owner_or_admin),
    db: Session = Depends(get_db)
):
    return crud.update_course_module(db, module, module_in)

@router.delete("/modules/{module_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_module(
    module: CourseModule = Depends(get_module_owner_or_admin),
    db: Session = Depends(get_db)
):
    logger.info(f"Deleting module ID {module.id} of course {module.course_id}")
    crud.delete_course_module(db, module)

# --- Lesson Endpoints ---
@router.post("/modules/{module_id}/lessons", response_model=schemas.LessonDisplay, status_code=status.HTTP_201_CREATED)
def create_new_lesson(
    lesson_in: schemas.LessonCreate,
    module: CourseModule = Depends(get_module_owner_or_admin),
    db: Session = Depends(get_db)
):
    logger.info(f"Creating lesson '{lesson_in.title}' in module ID {module.id}")
    return crud.create_lesson(db, lesson_in, module.id)

@router.put("/lessons/{lesson_id}", response_model=schemas.LessonDisplay)
def update_existing_lesson(
    lesson_in: schemas.LessonUpdate,
    lesson: Lesson = Depends(get_lesson_owner_or_admin),
    db: Session = Depends(get_db)
):
    return crud.update_lesson(db, lesson, lesson_in)

@router.delete("/lessons/{lesson_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_lesson(
    lesson: Lesson = Depends(get_lesson_owner_or_admin),
    db: Session = Depends(get_db)
):
    crud.delete_lesson(db, lesson)

@router.post("/lessons/{lesson_id}/progress", response_model=schemas.LessonProgressDisplay)
def record_progress_for_lesson(
    progress_in: schemas.LessonProgressUpdate,
    lesson: Lesson = Depends(get_lesson_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Record watch time or completion of a lesson. Requires an enrollment in the lesson's course."""
    course_id = lesson.module.course_id
    if crud.get_enrollment(db, current_user.id, course_id) is None and not lesson.is_preview:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course.")
    return crud.record_lesson_progress(
        db, current_user.id, lesson.id, watch_time=progress_in.watch_time, completed=progress_in.completed
    )

# --- Enrollment Endpoints ---
@router.post("/{course_id}/enroll", response_model=schemas.EnrollmentDisplay, status_code=status.HTTP_201_CREATED)
def enroll_in_course(
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Enroll the caller in a free published course. Paid courses are enrolled
    automatically once their payment is verified.
    """
    if not course.is_published:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course.id} not found.")
    if _effective_price(course) > 0 and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="This course requires payment before enrollment.",
        )
    logger.info(f"User {current_user.email} enrolling in course ID {course.id}")
    return crud.create_enrollment(db, current_user.id, course.id)

@router.get("/{course_id}/enrollments", response_model=List[schemas.EnrollmentDisplay])
def read_course_enrollments(
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    return crud.get_course_enrollments(db, course.id)

@router.put("/{course_id}/progress", response_model=schemas.EnrollmentDisplay)
def update_my_course_progress(
    progress_in: schemas.EnrollmentProgressUpdate,
    course: Course = Depends(get_course_or_404),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Set the caller's completion percentage; 100 completes the enrollment."""
    enrollment = crud.get_enrollment(db, current_user.id, course.id)
    if enrollment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Enrollment not found.")
    return crud.update_enrollment_progress(db, enrollment, progress_in.progress)
