from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from typing import Optional
import logging

from backend.core.database import get_db # Re-export or use directly
from backend.core.exceptions import AuthenticationError
from backend.core.security import FIREBASE_TOKEN_PROVIDER, authenticate_token, extract_bearer_token
from backend.crud.user_crud import get_user_by_firebase_uid, get_user_by_id
from backend.crud.course_crud import get_course, get_module, get_lesson
from backend.models.enums import UserRole
from backend.models.user_model import User
from backend.models.course_model import Course, CourseModule, Lesson
from backend.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

def get_token_data(request: Request) -> TokenData:
    """
    Identity of the caller. The edge middleware has already verified the token for
    gated paths; everywhere else the Authorization header is verified here.
    """
    token_data: Optional[TokenData] = getattr(request.state, "current_user", None)
    if token_data is not None:
        return token_data

    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        return authenticate_token(token)
    except AuthenticationError as e:
        logger.warning(f"Token verification failed: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

def resolve_user(db: Session, token_data: TokenData) -> Optional[User]:
    if token_data.provider == FIREBASE_TOKEN_PROVIDER:
        return get_user_by_firebase_uid(db, firebase_uid=token_data.subject)
    try:
        return get_user_by_id(db, int(token_data.subject))
    except ValueError:
        logger.warning(f"App token subject '{token_data.subject}' is not a user ID.")
        return None

# Dependency to get the current user from the verified bearer token
async def get_current_user(
    token_data: TokenData = Depends(get_token_data), db: Session = Depends(get_db)
) -> User:
    user = resolve_user(db, token_data)
    if user is None:
        logger.warning(f"User not found in DB for {token_data.provider} subject: {token_data.subject}")
        # Valid token, but the account was never provisioned through /api/auth/register
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account not found or not fully registered in the system.",
        )
    logger.debug(f"Authenticated user retrieved: {user.email} (ID: {user.id})")
    return user


# --- User Status/Role Dependencies ---
async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        logger.warning(f"Inactive user {current_user.email} attempted access.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive.")
    return current_user


async def get_current_admin_user(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        logger.warning(f"Admin access denied for user: {current_user.email} (Role: {current_user.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires admin privileges.",
        )
    return current_user


async def get_current_instructor_or_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role not in (UserRole.INSTRUCTOR, UserRole.ADMIN):
        logger.warning(f"Instructor access denied for user: {current_user.email} (Role: {current_user.role})")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Operation not permitted: Requires instructor privileges.",
        )
    return current_user


def is_owner_or_admin(user: User, owner_id: Optional[int]) -> bool:
    return user.role == UserRole.ADMIN or (owner_id is not None and owner_id == user.id)


# --- Resource Specific Fetching and Authorization Dependencies ---

def get_course_or_404(course_id: int, db: Session = Depends(get_db)) -> Course:
    course = get_course(db, course_id)
    if not course:
        logger.warning(f"Course with ID {course_id} not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course_id} not found.")
    return course

def get_module_or_404(module_id: int, db: Session = Depends(get_db)) -> CourseModule:
    module = get_module(db, module_id)
    if not module:
        logger.warning(f"Module with ID {module_id} not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Module with ID {module_id} not found.")
    return module

def get_lesson_or_404(lesson_id: int, db: Session = Depends(get_db)) -> Lesson:
    lesson = get_lesson(db, lesson_id)
    if not lesson:
        logger.warning(f"Lesson with ID {lesson_id} not found.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Lesson with ID {lesson_id} not found.")
    return lesson


def _forbid(user: User, what: str):
    logger.warning(f"User {user.email} not authorized for {what}. Not admin or owner.")
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Not authorized to perform this action on the specified {what.split(' ')[0]}.",
    )

# Dependency for Course Ownership or Admin
async def get_course_owner_or_admin(
    course: Course = Depends(get_course_or_404),
    current_user: User = Depends(get_current_active_user)
) -> Course:
    if is_owner_or_admin(current_user, course.instructor_id):
        return course
    _forbid(current_user, f"course {course.id}")

# Dependency for Module Ownership (via parent Course) or Admin
async def get_module_owner_or_admin(
    module: CourseModule = Depends(get_module_or_404),
    current_user: User = Depends(get_current_active_user),
) -> CourseModule:
    if is_owner_or_admin(current_user, module.course.instructor_id):
        return module
    _forbid(current_user, f"module {module.id}")

# Dependency for Lesson Ownership (via parent Module's Course) or Admin
async def get_lesson_owner_or_admin(
    lesson: Lesson = Depends(get_lesson_or_404),
    current_user: User = Depends(get_current_active_user),
) -> Lesson:
    if is_owner_or_admin(current_user, lesson.module.course.instructor_id):
        return lesson
    _forbid(current_user, f"lesson {lesson.id}")


def get_user_or_404(user_id: int, db: Session = Depends(get_db)) -> User:
    user = get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found.")
    return user
