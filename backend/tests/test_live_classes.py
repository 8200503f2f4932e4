from datetime import datetime, timedelta, timezone

import pytest

from backend.core.exceptions import MeetingProviderError
from backend.crud import course_crud
from backend.models.enums import UserRole
from backend.models.live_class_model import LiveClass
from backend.services import live_class_service


def _starts_in(days=3):
    return (datetime.now(timezone.utc) + timedelta(days=days)).replace(microsecond=0).isoformat()


@pytest.fixture
def zoom(mocker):
    zoom_service = mocker.patch.object(live_class_service, "zoom_service")
    zoom_service.create_meeting.return_value = {
        "id": 81234567890,
        "join_url": "https://zoom.us/j/81234567890",
        "start_url": "https://zoom.us/s/81234567890?zak=host",
        "password": "a1b2c3",
    }
    zoom_service.get_recording_url.return_value = "https://zoom.us/rec/share/abc"
    return zoom_service


@pytest.fixture
def course(instructor, make_course):
    return make_course(instructor, title="Live Portfolio Reviews")


@pytest.fixture
def schedule(client, instructor, course, get_auth_headers_for):
    def _schedule(user=None, **overrides):
        payload = {
            "course_id": course.id,
            "title": "Weekly Q&A",
            "scheduled_at": _starts_in(),
            "duration": 60,
            "platform": "zoom",
            **overrides,
        }
        return client.post("/api/live-classes/", json=payload, headers=get_auth_headers_for(user or instructor))

    return _schedule


def test_schedule_zoom_class(schedule, zoom):
    response = schedule()

    assert response.status_code == 201
    body = response.json()
    assert body["meeting_url"] == "https://zoom.us/j/81234567890"
    assert body["meeting_id"] == "81234567890"
    assert body["meeting_password"] == "a1b2c3"
    assert body["start_url"].startswith("https://zoom.us/s/")
    assert body["status"] == "scheduled"

    title, start, duration, _ = zoom.create_meeting.call_args.args
    assert title == "Weekly Q&A"
    assert start.tzinfo is not None
    assert duration == 60


def test_provider_failure_stores_nothing(db_session, schedule, zoom):
    zoom.create_meeting.side_effect = MeetingProviderError("Zoom is not configured.", provider="zoom")

    response = schedule()

    assert response.status_code == 502
    assert response.json() == {"detail": "Zoom is not configured.", "provider": "zoom"}
    assert db_session.query(LiveClass).count() == 0


def test_custom_platform_needs_a_meeting_url(schedule):
    missing = schedule(platform="custom")
    assert missing.status_code == 422

    created = schedule(platform="custom", meeting_url="https://meet.example.com/room-42")
    assert created.status_code == 201
    assert created.json()["meeting_url"] == "https://meet.example.com/room-42"
    assert created.json()["meeting_id"] is None


def test_schedule_for_unknown_or_foreign_course(schedule, make_user, zoom):
    assert schedule(course_id=9999).status_code == 404
    other = make_user(UserRole.INSTRUCTOR)
    assert schedule(user=other).status_code == 403
    zoom.create_meeting.assert_not_called()


# --- Visibility ---
def test_students_see_classes_of_enrolled_courses_only(client, db_session, student, course, schedule, zoom, get_auth_headers_for):
    live_class = schedule().json()
    headers = get_auth_headers_for(student)

    assert client.get("/api/live-classes/", params={"course_id": course.id}, headers=headers).status_code == 403
    assert client.get(f"/api/live-classes/{live_class['id']}", headers=headers).status_code == 403
    assert client.get("/api/live-classes/", headers=headers).status_code == 400

    course_crud.create_enrollment(db_session, student.id, course.id)
    listed = client.get("/api/live-classes/", params={"course_id": course.id}, headers=headers)
    assert listed.status_code == 200
    assert [c["id"] for c in listed.json()] == [live_class["id"]]
    # Students never receive the host link
    assert "start_url" not in listed.json()[0]

    assert client.get(f"/api/live-classes/{live_class['id']}/host", headers=headers).status_code == 403


def test_instructor_lists_own_upcoming_classes(client, instructor, schedule, zoom, get_auth_headers_for):
    schedule(title="Later session", scheduled_at=_starts_in(days=10))
    schedule(title="Sooner session", scheduled_at=_starts_in(days=1))

    upcoming = client.get("/api/live-classes/", params={"upcoming": True}, headers=get_auth_headers_for(instructor)).json()
    assert [c["title"] for c in upcoming] == ["Sooner session", "Later session"]


# --- Lifecycle ---
def test_start_then_end_attaches_recording(client, instructor, schedule, zoom, get_auth_headers_for):
    live_class = schedule().json()
    headers = get_auth_headers_for(instructor)

    started = client.post(f"/api/live-classes/{live_class['id']}/start", headers=headers)
    assert started.status_code == 200
    assert started.json()["status"] == "live"
    assert client.post(f"/api/live-classes/{live_class['id']}/start", headers=headers).status_code == 400

    ended = client.post(f"/api/live-classes/{live_class['id']}/end", headers=headers)
    assert ended.status_code == 200
    assert ended.json()["status"] == "completed"
    assert ended.json()["recording_url"] == "https://zoom.us/rec/share/abc"
    zoom.get_recording_url.assert_called_once_with("81234567890")

    assert client.post(f"/api/live-classes/{live_class['id']}/end", headers=headers).status_code == 400


def test_update_is_saved_even_if_provider_refuses(client, instructor, schedule, zoom, get_auth_headers_for):
    live_class = schedule().json()
    zoom.update_meeting.side_effect = MeetingProviderError("Zoom API error: 429", provider="zoom")

    response = client.put(
        f"/api/live-classes/{live_class['id']}", json={"title": "Weekly Q&A (moved)", "duration": 90},
        headers=get_auth_headers_for(instructor),
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Weekly Q&A (moved)"
    assert response.json()["duration"] == 90
    zoom.update_meeting.assert_called_once()


def test_description_only_update_skips_provider(client, instructor, schedule, zoom, get_auth_headers_for):
    live_class = schedule().json()
    client.put(f"/api/live-classes/{live_class['id']}", json={"description": "Bring questions"}, headers=get_auth_headers_for(instructor))
    zoom.update_meeting.assert_not_called()


def test_delete_removes_meeting(client, db_session, instructor, schedule, zoom, get_auth_headers_for):
    live_class = schedule().json()

    response = client.delete(f"/api/live-classes/{live_class['id']}", headers=get_auth_headers_for(instructor))

    assert response.status_code == 204
    zoom.delete_meeting.assert_called_once_with("81234567890")
    assert db_session.query(LiveClass).count() == 0
