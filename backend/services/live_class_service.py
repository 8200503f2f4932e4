import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from backend.core.exceptions import CourseNotFoundError, LiveClassNotFoundError, MeetingProviderError
from backend.core.meetings import google_meet_service, zoom_service
from backend.crud import course_crud, live_class_crud
from backend.models.enums import LiveClassPlatform, LiveClassStatus
from backend.models.live_class_model import LiveClass
from backend.models.user_model import User
from backend.schemas.live_class_schema import LiveClassCreate, LiveClassUpdate

logger = logging.getLogger(__name__)

# Changing any of these is mirrored to the meeting provider
PROVIDER_FIELDS = {"title", "scheduled_at", "duration"}

def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

def _open_meeting(live_class_in: LiveClassCreate) -> Dict[str, Any]:
    """Creates the meeting at the provider. Provider failures propagate as MeetingProviderError."""
    scheduled_at = _as_utc(live_class_in.scheduled_at)
    if live_class_in.platform == LiveClassPlatform.ZOOM:
        meeting = zoom_service.create_meeting(
            live_class_in.title, scheduled_at, live_class_in.duration, live_class_in.description
        )
        return {
            "meeting_url": meeting.get("join_url"),
            "meeting_id": str(meeting.get("id")) if meeting.get("id") is not None else None,
            "start_url": meeting.get("start_url"),
            "meeting_password": meeting.get("password"),
        }
    if live_class_in.platform == LiveClassPlatform.GOOGLE_MEET:
        event = google_meet_service.create_meeting(
            live_class_in.title, scheduled_at, live_class_in.duration, live_class_in.description
        )
        return {
            "meeting_url": event.get("hangoutLink"),
            "meeting_id": event.get("id"),
            "calendar_link": google_meet_service.calendar_link(event["id"]) if event.get("id") else None,
        }
    return {"meeting_url": live_class_in.meeting_url}

def create_live_class(db: Session, instructor: User, live_class_in: LiveClassCreate) -> LiveClass:
    if course_crud.get_course(db, live_class_in.course_id) is None:
        raise CourseNotFoundError(f"Course {live_class_in.course_id} not found.")
    meeting = _open_meeting(live_class_in)
    return live_class_crud.create_live_class(
        db,
        course_id=live_class_in.course_id,
        instructor_id=instructor.id,
        title=live_class_in.title,
        scheduled_at=_as_utc(live_class_in.scheduled_at),
        duration=live_class_in.duration,
        platform=live_class_in.platform,
        description=live_class_in.description,
        max_attendees=live_class_in.max_attendees,
        meeting=meeting,
    )

def get_live_class_or_404(db: Session, live_class_id: int) -> LiveClass:
    live_class = live_class_crud.get_live_class(db, live_class_id)
    if live_class is None:
        raise LiveClassNotFoundError(f"Live class {live_class_id} not found.")
    return live_class

def update_live_class(db: Session, live_class: LiveClass, live_class_in: LiveClassUpdate) -> LiveClass:
    """Saves the changes locally; a provider that refuses the update is logged and otherwise ignored."""
    changes = live_class_in.model_dump(exclude_unset=True)
    if "scheduled_at" in changes and changes["scheduled_at"] is not None:
        changes["scheduled_at"] = _as_utc(changes["scheduled_at"])

    if PROVIDER_FIELDS & changes.keys() and live_class.meeting_id:
        title = changes.get("title") or live_class.title
        start = changes.get("scheduled_at") or _as_utc(live_class.scheduled_at)
        duration = changes.get("duration") or live_class.duration
        try:
            if live_class.platform == LiveClassPlatform.ZOOM:
                zoom_service.update_meeting(live_class.meeting_id, title, start, duration)
            elif live_class.platform == LiveClassPlatform.GOOGLE_MEET:
                google_meet_service.update_meeting(live_class.meeting_id, title, start, duration)
        except MeetingProviderError as e:
            logger.error(f"Provider update failed for live class {live_class.id}; saving locally anyway: {e.message}")

    return live_class_crud.update_live_class(db, live_class, changes)

def delete_live_class(db: Session, live_class: LiveClass) -> None:
    if live_class.meeting_id:
        try:
            if live_class.platform == LiveClassPlatform.ZOOM:
                zoom_service.delete_meeting(live_class.meeting_id)
            elif live_class.platform == LiveClassPlatform.GOOGLE_MEET:
                google_meet_service.delete_meeting(live_class.meeting_id)
        except MeetingProviderError as e:
            logger.error(f"Provider delete failed for live class {live_class.id}; deleting locally anyway: {e.message}")
    live_class_crud.delete_live_class(db, live_class)

def start_live_class(db: Session, live_class: LiveClass) -> LiveClass:
    if live_class.status != LiveClassStatus.SCHEDULED:
        raise ValueError(f"Only scheduled classes can be started (current status: {live_class.status.value}).")
    return live_class_crud.update_live_class(db, live_class, {"status": LiveClassStatus.LIVE})

def end_live_class(db: Session, live_class: LiveClass) -> LiveClass:
    """Marks the class completed and attaches the Zoom cloud recording when one exists."""
    if live_class.status in (LiveClassStatus.COMPLETED, LiveClassStatus.CANCELLED):
        raise ValueError(f"Live class is already {live_class.status.value}.")
    changes: Dict[str, Any] = {"status": LiveClassStatus.COMPLETED}
    if live_class.platform == LiveClassPlatform.ZOOM and live_class.meeting_id:
        try:
            recording_url = zoom_service.get_recording_url(live_class.meeting_id)
        except MeetingProviderError as e:
            logger.error(f"Could not fetch recording for live class {live_class.id}: {e.message}")
            recording_url = None
        if recording_url:
            changes["recording_url"] = recording_url
    return live_class_crud.update_live_class(db, live_class, changes)

def list_live_classes(
    db: Session, instructor_id: Optional[int] = None, course_id: Optional[int] = None, upcoming: bool = False
) -> List[LiveClass]:
    if upcoming:
        return live_class_crud.get_upcoming_live_classes(db, instructor_id=instructor_id)
    if course_id is not None:
        return live_class_crud.get_live_classes_by_course(db, course_id)
    if instructor_id is not None:
        return live_class_crud.get_live_classes_by_instructor(db, instructor_id)
    return live_class_crud.get_upcoming_live_classes(db)
