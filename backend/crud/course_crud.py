from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy.exc import IntegrityError
from pydantic import BaseModel
from typing import List, Optional, Tuple
from datetime import datetime, timezone
import logging
import re
import time

from backend.core.database import commit_or_rollback
from backend.models.enums import EnrollmentStatus
from backend.models.course_model import (
    Category, Course, CourseModule, Lesson, Enrollment, LessonProgress
)
from backend.schemas import course_schema as schemas

logger = logging.getLogger(__name__)

# Helper function for updating entities
def update_db_object(db_obj, update_data: BaseModel):
    for field, value in update_data.model_dump(exclude_unset=True).items():
        setattr(db_obj, field, value)
    return db_obj

def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")

def _unique_course_slug(db: Session, title: str, exclude_id: Optional[int] = None) -> str:
    slug = slugify(title) or "course"
    query = db.query(Course.id).filter(Course.slug == slug)
    if exclude_id is not None:
        query = query.filter(Course.id != exclude_id)
    if query.first():
        slug = f"{slug}-{int(time.time() * 1000)}"
        logger.debug(f"Slug collision for '{title}', using '{slug}'.")
    return slug

# --- Category CRUD ---
def create_category(db: Session, category_in: schemas.CategoryCreate) -> Category:
    slug = slugify(category_in.name)
    if db.query(Category.id).filter(Category.slug == slug).first():
        raise ValueError(f"Category '{category_in.name}' already exists.")
    db_category = Category(**category_in.model_dump(), slug=slug)
    db.add(db_category)
    commit_or_rollback(db, db_category)
    logger.info(f"Category '{db_category.name}' (ID: {db_category.id}) created.")
    return db_category

def get_categories(db: Session) -> List[Category]:
    return db.query(Category).filter(Category.is_active == True).order_by(Category.name).all()

def get_category(db: Session, category_id: int) -> Optional[Category]:
    return db.query(Category).filter(Category.id == category_id).first()

# --- Course CRUD ---
def create_course(db: Session, course_in: schemas.CourseCreate, instructor_id: int) -> Course:
    logger.debug(f"Creating course titled '{course_in.title}' for instructor_id {instructor_id}")
    if course_in.category_id is not None and not get_category(db, course_in.category_id):
        raise ValueError(f"Category with ID {course_in.category_id} not found.")

    db_course = Course(
        **course_in.model_dump(),
        slug=_unique_course_slug(db, course_in.title),
        instructor_id=instructor_id,
        is_published=False,
    )
    db.add(db_course)
    try:
        commit_or_rollback(db, db_course)
    except IntegrityError as e:
        logger.error(f"Integrity error creating course '{course_in.title}': {e}", exc_info=True)
        raise ValueError("Could not create course. A course with this slug may already exist.")
    logger.info(f"Course '{db_course.title}' (ID: {db_course.id}, slug: {db_course.slug}) created.")
    return db_course

def get_course(db: Session, course_id: int) -> Optional[Course]:
    logger.debug(f"Fetching course with ID: {course_id}")
    return db.query(Course).filter(Course.id == course_id).first()

def get_course_by_slug(db: Session, slug: str) -> Optional[Course]:
    return db.query(Course).filter(Course.slug == slug).first()

def get_course_with_modules(db: Session, course_id: int) -> Optional[Course]:
    """Course with its modules and each module's lessons, both in display order."""
    return (
        db.query(Course)
        .options(
            selectinload(Course.modules).selectinload(CourseModule.lessons),
            joinedload(Course.category),
            joinedload(Course.instructor),
        )
        .filter(Course.id == course_id)
        .first()
    )

def get_published_courses(
    db: Session,
    skip: int = 0,
    limit: int = 20,
    category_id: Optional[int] = None,
    level: Optional[str] = None,
    search: Optional[str] = None,
) -> Tuple[List[Course], int]:
    query = db.query(Course).filter(Course.is_published == True, Course.is_active == True)
    if category_id is not None:
        query = query.filter(Course.category_id == category_id)
    if level:
        query = query.filter(Course.level == level)
    if search:
        query = query.filter(Course.title.ilike(f"%{search}%"))
    total = query.count()
    items = (
        query.options(joinedload(Course.instructor))
        .order_by(Course.created_at.desc(), Course.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total

def get_courses_by_instructor(db: Session, instructor_id: int) -> List[Course]:
    return (
        db.query(Course)
        .filter(Course.instructor_id == instructor_id)
        .order_by(Course.created_at.desc(), Course.id.desc())
        .all()
    )

def update_course(db: Session, db_course: Course, course_in: schemas.CourseUpdate) -> Course:
    changes = course_in.model_dump(exclude_unset=True)
    logger.debug(f"Updating course ID: {db_course.id} with data: {changes}")
    if changes.get("category_id") is not None and not get_category(db, changes["category_id"]):
        raise ValueError(f"Category with ID {changes['category_id']} not found.")
    if changes.get("title") and changes["title"] != db_course.title:
        db_course.slug = _unique_course_slug(db, changes["title"], exclude_id=db_course.id)
    update_db_object(db_course, course_in)
    commit_or_rollback(db, db_course)
    logger.info(f"Course '{db_course.title}' (ID: {db_course.id}) updated.")
    return db_course

def set_course_published(db: Session, db_course: Course, published: bool) -> Course:
    db_course.is_published = published
    commit_or_rollback(db, db_course)
    logger.info(f"Course ID {db_course.id} {'published' if published else 'unpublished'}.")
    return db_course

def delete_course(db: Session, db_course: Course) -> None:
    course_id = db_course.id
    db.delete(db_course)
    commit_or_rollback(db)
    logger.info(f"Course ID: {course_id} deleted.")

# --- CourseModule CRUD ---
def create_course_module(db: Session, module_in: schemas.CourseModuleCreate, course_id: int) -> CourseModule:
    logger.debug(f"Creating module '{module_in.title}' for course_id {course_id}")
    db_module = CourseModule(**module_in.model_dump(), course_id=course_id)
    db.add(db_module)
    try:
        commit_or_rollback(db, db_module)
    except IntegrityError:
        raise ValueError(f"A module with order {module_in.order} already exists in this course.")
    logger.info(f"Module '{db_module.title}' (ID: {db_module.id}) created for course ID {course_id}.")
    return db_module

def get_module(db: Session, module_id: int) -> Optional[CourseModule]:
    return db.query(CourseModule).filter(CourseModule.id == module_id).first()

def get_modules_for_course(db: Session, course_id: int) -> List[CourseModule]:
    return db.query(CourseModule).filter(CourseModule.course_id == course_id).order_by(CourseModule.order).all()

def update_course_module(db: Session, db_module: CourseModule, module_in: schemas.CourseModuleUpdate) -> CourseModule:
    update_db_object(db_module, module_in)
    try:
        commit_or_rollback(db, db_module)
    except IntegrityError:
        raise ValueError(f"A module with order {module_in.order} already exists in this course.")
    logger.info(f"Module '{db_module.title}' (ID: {db_module.id}) updated.")
    return db_module

def delete_course_module(db: Session, db_module: CourseModule) -> None:
    module_id = db_module.id
    db.delete(db_module)
    commit_or_rollback(db)
    logger.info(f"Module ID: {module_id} deleted.")

# --- Lesson CRUD ---
def create_lesson(db: Session, lesson_in: schemas.LessonCreate, module_id: int) -> Lesson:
    db_lesson = Lesson(**lesson_in.model_dump(), module_id=module_id)
    db.add(db_lesson)
    try:
        commit_or_rollback(db, db_lesson)
    except IntegrityError:
        raise ValueError(f"A lesson with order {lesson_in.order} already exists in this module.")
    logger.info(f"Lesson '{db_lesson.title}' (ID: {db_lesson.id}, type: {db_lesson.type}) created in module {module_id}.")
    return db_lesson

def get_lesson(db: Session, lesson_id: int) -> Optional[Lesson]:
    return db.query(Lesson).filter(Lesson.id == lesson_id).first()

def update_lesson(db: Session, db_lesson: Lesson, lesson_in: schemas.LessonUpdate) -> Lesson:
    update_db_object(db_lesson, lesson_in)
    try:
        commit_or_rollback(db, db_lesson)
    except IntegrityError:
        raise ValueError(f"A lesson with order {lesson_in.order} already exists in this module.")
    logger.info(f"Lesson ID {db_lesson.id} updated.")
    return db_lesson

def delete_lesson(db: Session, db_lesson: Lesson) -> None:
    lesson_id = db_lesson.id
    db.delete(db_lesson)
    commit_or_rollback(db)
    logger.info(f"Lesson ID: {lesson_id} deleted.")

# --- Enrollment ---
def get_enrollment(db: Session, user_id: int, course_id: int) -> Optional[Enrollment]:
    return db.query(Enrollment).filter(Enrollment.user_id == user_id, Enrollment.course_id == course_id).first()

def get_user_enrollments(db: Session, user_id: int) -> List[Enrollment]:
    return db.query(Enrollment).filter(Enrollment.user_id == user_id).order_by(Enrollment.id.desc()).all()

def get_course_enrollments(db: Session, course_id: int) -> List[Enrollment]:
    return db.query(Enrollment).filter(Enrollment.course_id == course_id).order_by(Enrollment.id.desc()).all()

def create_enrollment(db: Session, user_id: int, course_id: int) -> Enrollment:
    """Enrolls the user; an existing enrollment for the pair is returned unchanged."""
    existing = get_enrollment(db, user_id, course_id)
    if existing:
        logger.info(f"User {user_id} already enrolled in course {course_id}.")
        return existing
    db_enrollment = Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.ACTIVE, progress=0)
    db.add(db_enrollment)
    commit_or_rollback(db, db_enrollment)
    logger.info(f"User {user_id} enrolled in course {course_id} (enrollment ID {db_enrollment.id}).")
    return db_enrollment

def update_enrollment_progress(db: Session, db_enrollment: Enrollment, progress: int) -> Enrollment:
    db_enrollment.progress = progress
    if progress >= 100 and db_enrollment.status != EnrollmentStatus.COMPLETED:
        db_enrollment.status = EnrollmentStatus.COMPLETED
        db_enrollment.completed_at = datetime.now(timezone.utc)
        logger.info(f"Enrollment {db_enrollment.id} completed.")
    commit_or_rollback(db, db_enrollment)
    return db_enrollment

def complete_enrollment(db: Session, db_enrollment: Enrollment) -> Enrollment:
    return update_enrollment_progress(db, db_enrollment, 100)

def mark_certificate_issued(db: Session, db_enrollment: Enrollment) -> Enrollment:
    db_enrollment.certificate_issued = True
    commit_or_rollback(db, db_enrollment)
    return db_enrollment

def record_lesson_progress(
    db: Session, user_id: int, lesson_id: int, watch_time: int = 0, completed: bool = False
) -> LessonProgress:
    """Adds watch time to the user's progress row for the lesson, creating it on first view."""
    entry = db.query(LessonProgress).filter(
        LessonProgress.user_id == user_id, LessonProgress.lesson_id == lesson_id
    ).first()
    if entry is None:
        entry = LessonProgress(user_id=user_id, lesson_id=lesson_id, watch_time=0, is_completed=False)
        db.add(entry)
    entry.watch_time = (entry.watch_time or 0) + max(watch_time, 0)
    if completed and not entry.is_completed:
        entry.is_completed = True
        entry.completed_at = datetime.now(timezone.utc)
    commit_or_rollback(db, entry)
    return entry
