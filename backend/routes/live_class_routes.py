from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_current_instructor_or_admin, is_owner_or_admin
from backend.crud import course_crud
from backend.models.enums import UserRole
from backend.models.live_class_model import LiveClass
from backend.models.user_model import User
from backend.schemas import live_class_schema as schemas
from backend.services import live_class_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/live-classes", tags=["Live Classes"])

def _get_owned_live_class(live_class_id: int, db: Session, user: User) -> LiveClass:
    live_class = live_class_service.get_live_class_or_404(db, live_class_id)
    if not is_owner_or_admin(user, live_class.instructor_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to manage this live class.")
    return live_class

@router.post("/", response_model=schemas.LiveClassHostDisplay, status_code=status.HTTP_201_CREATED)
def schedule_live_class(
    live_class_in: schemas.LiveClassCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """
    Schedule a live class for a course the caller teaches. Zoom and Google Meet classes
    are created at the provider first; a provider failure answers 502 and nothing is stored.
    """
    course = course_crud.get_course(db, live_class_in.course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {live_class_in.course_id} not found.")
    if not is_owner_or_admin(current_user, course.instructor_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to schedule classes for this course.")
    logger.info(f"User {current_user.email} scheduling {live_class_in.platform.value} class for course {course.id}")
    return live_class_service.create_live_class(db, current_user, live_class_in)

@router.get("/", response_model=List[schemas.LiveClassDisplay])
def read_live_classes(
    course_id: Optional[int] = Query(None),
    upcoming: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """
    Instructors get their own classes; students must name a course they are enrolled in.
    """
    if course_id is not None:
        course = course_crud.get_course(db, course_id)
        if course is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {course_id} not found.")
        if not is_owner_or_admin(current_user, course.instructor_id) and course_crud.get_enrollment(db, current_user.id, course_id) is None:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course.")
        return live_class_service.list_live_classes(db, course_id=course_id)

    if current_user.role == UserRole.ADMIN:
        return live_class_service.list_live_classes(db, upcoming=upcoming)
    if current_user.role == UserRole.INSTRUCTOR:
        return live_class_service.list_live_classes(db, instructor_id=current_user.id, upcoming=upcoming)
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="course_id is required.")

@router.get("/{live_class_id}", response_model=schemas.LiveClassDisplay)
def read_live_class(
    live_class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    live_class = live_class_service.get_live_class_or_404(db, live_class_id)
    if not is_owner_or_admin(current_user, live_class.instructor_id) and \
            course_crud.get_enrollment(db, current_user.id, live_class.course_id) is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not enrolled in this course.")
    return live_class

@router.get("/{live_class_id}/host", response_model=schemas.LiveClassHostDisplay)
def read_live_class_host_details(
    live_class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """Includes the provider's host start link."""
    return _get_owned_live_class(live_class_id, db, current_user)

@router.put("/{live_class_id}", response_model=schemas.LiveClassHostDisplay)
def update_existing_live_class(
    live_class_id: int,
    live_class_in: schemas.LiveClassUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    live_class = _get_owned_live_class(live_class_id, db, current_user)
    return live_class_service.update_live_class(db, live_class, live_class_in)

@router.delete("/{live_class_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_existing_live_class(
    live_class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    live_class = _get_owned_live_class(live_class_id, db, current_user)
    logger.info(f"User {current_user.email} deleting live class {live_class.id}")
    live_class_service.delete_live_class(db, live_class)

@router.post("/{live_class_id}/start", response_model=schemas.LiveClassHostDisplay)
def start_existing_live_class(
    live_class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    live_class = _get_owned_live_class(live_class_id, db, current_user)
    return live_class_service.start_live_class(db, live_class)

@router.post("/{live_class_id}/end", response_model=schemas.LiveClassHostDisplay)
def end_existing_live_class(
    live_class_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    live_class = _get_owned_live_class(live_class_id, db, current_user)
    return live_class_service.end_live_class(db, live_class)
