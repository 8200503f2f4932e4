from sqlalchemy.orm import Session
from typing import List, Optional, Dict, Any
from datetime import datetime, timezone
import logging

from backend.core.database import commit_or_rollback
from backend.models.live_class_model import LiveClass
from backend.models.enums import LiveClassPlatform, LiveClassStatus

logger = logging.getLogger(__name__)

def create_live_class(
    db: Session,
    course_id: int,
    instructor_id: int,
    title: str,
    scheduled_at: datetime,
    duration: int,
    platform: LiveClassPlatform,
    description: Optional[str] = None,
    max_attendees: Optional[int] = None,
    meeting: Optional[Dict[str, Any]] = None,
) -> LiveClass:
    """`meeting` carries the provider fields: meeting_url, meeting_id, start_url, meeting_password, calendar_link."""
    db_live_class = LiveClass(
        course_id=course_id,
        instructor_id=instructor_id,
        title=title,
        description=description,
        scheduled_at=scheduled_at,
        duration=duration,
        platform=platform,
        max_attendees=max_attendees,
        status=LiveClassStatus.SCHEDULED,
        **(meeting or {}),
    )
    db.add(db_live_class)
    commit_or_rollback(db, db_live_class)
    logger.info(f"Live class '{title}' (ID: {db_live_class.id}) scheduled on {platform.value} for {scheduled_at.isoformat()}.")
    return db_live_class

def get_live_class(db: Session, live_class_id: int) -> Optional[LiveClass]:
    return db.query(LiveClass).filter(LiveClass.id == live_class_id).first()

def update_live_class(db: Session, db_live_class: LiveClass, changes: Dict[str, Any]) -> LiveClass:
    for field, value in changes.items():
        setattr(db_live_class, field, value)
    commit_or_rollback(db, db_live_class)
    logger.info(f"Live class {db_live_class.id} updated: {sorted(changes)}")
    return db_live_class

def delete_live_class(db: Session, db_live_class: LiveClass) -> None:
    live_class_id = db_live_class.id
    db.delete(db_live_class)
    commit_or_rollback(db)
    logger.info(f"Live class {live_class_id} deleted.")

def get_live_classes_by_instructor(db: Session, instructor_id: int) -> List[LiveClass]:
    return (
        db.query(LiveClass)
        .filter(LiveClass.instructor_id == instructor_id)
        .order_by(LiveClass.scheduled_at.desc())
        .all()
    )

def get_live_classes_by_course(db: Session, course_id: int) -> List[LiveClass]:
    return (
        db.query(LiveClass)
        .filter(LiveClass.course_id == course_id)
        .order_by(LiveClass.scheduled_at.desc())
        .all()
    )

def get_upcoming_live_classes(db: Session, instructor_id: Optional[int] = None) -> List[LiveClass]:
    query = db.query(LiveClass).filter(LiveClass.scheduled_at >= datetime.now(timezone.utc))
    if instructor_id is not None:
        query = query.filter(LiveClass.instructor_id == instructor_id)
    return query.order_by(LiveClass.scheduled_at.asc()).all()
