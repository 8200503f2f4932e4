from backend.crud import course_crud
from backend.models.course_model import Enrollment
from backend.models.enums import EnrollmentStatus, UserRole


COURSE_PAYLOAD = {
    "title": "Intro to Statistics",
    "description": "Descriptive statistics, probability and inference.",
    "price": "0",
    "level": "beginner",
    "requirements": ["High school algebra"],
}


def test_student_cannot_create_course(client, student, get_auth_headers_for):
    response = client.post("/api/courses/", json=COURSE_PAYLOAD, headers=get_auth_headers_for(student))
    assert response.status_code == 403


def test_instructor_creates_courses_with_unique_slugs(client, instructor, get_auth_headers_for):
    headers = get_auth_headers_for(instructor)
    first = client.post("/api/courses/", json=COURSE_PAYLOAD, headers=headers)
    second = client.post("/api/courses/", json=COURSE_PAYLOAD, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 201
    assert first.json()["slug"] == "intro-to-statistics"
    assert second.json()["slug"] != first.json()["slug"]
    assert first.json()["instructor_id"] == instructor.id
    assert first.json()["is_published"] is False


def test_create_course_with_unknown_category(client, instructor, get_auth_headers_for):
    payload = {**COURSE_PAYLOAD, "category_id": 999}
    response = client.post("/api/courses/", json=payload, headers=get_auth_headers_for(instructor))
    assert response.status_code == 404


def test_invalid_course_payload_is_422(client, instructor, get_auth_headers_for):
    payload = {**COURSE_PAYLOAD, "price": "-5"}
    response = client.post("/api/courses/", json=payload, headers=get_auth_headers_for(instructor))
    assert response.status_code == 422
    assert response.json()["detail"].startswith("price:")


def test_unpublished_course_is_hidden_from_students(client, student, instructor, make_course, get_auth_headers_for):
    course = make_course(instructor, published=False)

    assert client.get(f"/api/courses/{course.id}", headers=get_auth_headers_for(student)).status_code == 404
    assert client.get(f"/api/courses/{course.id}", headers=get_auth_headers_for(instructor)).status_code == 200

    catalogue = client.get("/api/courses/", headers=get_auth_headers_for(student)).json()
    assert catalogue["total"] == 0

    publish = client.post(f"/api/courses/{course.id}/publish", headers=get_auth_headers_for(instructor))
    assert publish.status_code == 200
    catalogue = client.get("/api/courses/", headers=get_auth_headers_for(student)).json()
    assert catalogue["total"] == 1
    assert catalogue["items"][0]["id"] == course.id


def test_catalogue_search_and_paging(client, student, instructor, make_course, get_auth_headers_for):
    make_course(instructor, title="Deep Learning with PyTorch")
    make_course(instructor, title="Accounting Basics")
    headers = get_auth_headers_for(student)

    found = client.get("/api/courses/", params={"search": "pytorch"}, headers=headers).json()
    assert found["total"] == 1
    assert found["items"][0]["title"] == "Deep Learning with PyTorch"

    paged = client.get("/api/courses/", params={"page": 2, "size": 1}, headers=headers).json()
    assert paged["total"] == 2
    assert len(paged["items"]) == 1
    assert paged["page"] == 2


def test_other_instructor_cannot_edit(client, instructor, make_user, make_course, get_auth_headers_for):
    course = make_course(instructor)
    other = make_user(UserRole.INSTRUCTOR)
    response = client.put(f"/api/courses/{course.id}", json={"title": "Hijacked"}, headers=get_auth_headers_for(other))
    assert response.status_code == 403


def test_admin_can_edit_and_delete_any_course(client, instructor, admin, make_course, get_auth_headers_for, db_session):
    course = make_course(instructor)
    headers = get_auth_headers_for(admin)

    updated = client.put(f"/api/courses/{course.id}", json={"title": "Statistics Revisited"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["title"] == "Statistics Revisited"

    deleted = client.delete(f"/api/courses/{course.id}", headers=headers)
    assert deleted.status_code == 204
    assert course_crud.get_course(db_session, course.id) is None


# --- Modules & lessons ---
def test_modules_and_lessons(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor)
    headers = get_auth_headers_for(instructor)

    module = client.post(
        f"/api/courses/{course.id}/modules",
        json={"title": "Getting Started", "order": 1},
        headers=headers,
    )
    assert module.status_code == 201
    module_id = module.json()["id"]

    lesson = client.post(
        f"/api/courses/modules/{module_id}/lessons",
        json={"title": "What is a variable?", "type": "video", "order": 1, "duration": 12},
        headers=headers,
    )
    assert lesson.status_code == 201

    detail = client.get(f"/api/courses/{course.id}", headers=get_auth_headers_for(student)).json()
    assert [m["title"] for m in detail["modules"]] == ["Getting Started"]
    assert detail["modules"][0]["lessons"][0]["title"] == "What is a variable?"

    forbidden = client.post(
        f"/api/courses/modules/{module_id}/lessons",
        json={"title": "Sneaky lesson", "type": "text", "order": 2},
        headers=get_auth_headers_for(student),
    )
    assert forbidden.status_code == 403


def test_lesson_progress_requires_enrollment(client, db_session, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor)
    headers = get_auth_headers_for(instructor)
    module_id = client.post(
        f"/api/courses/{course.id}/modules", json={"title": "Basics", "order": 1}, headers=headers
    ).json()["id"]
    lesson_id = client.post(
        f"/api/courses/modules/{module_id}/lessons",
        json={"title": "Lesson one", "type": "video", "order": 1},
        headers=headers,
    ).json()["id"]

    student_headers = get_auth_headers_for(student)
    denied = client.post(f"/api/courses/lessons/{lesson_id}/progress", json={"watch_time": 30}, headers=student_headers)
    assert denied.status_code == 403

    course_crud.create_enrollment(db_session, student.id, course.id)
    client.post(f"/api/courses/lessons/{lesson_id}/progress", json={"watch_time": 30}, headers=student_headers)
    response = client.post(
        f"/api/courses/lessons/{lesson_id}/progress",
        json={"watch_time": 45, "completed": True},
        headers=student_headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["watch_time"] == 75
    assert body["is_completed"] is True


# --- Enrollment ---
def test_enroll_in_free_course_and_complete_it(client, db_session, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor)
    headers = get_auth_headers_for(student)

    enroll = client.post(f"/api/courses/{course.id}/enroll", headers=headers)
    assert enroll.status_code == 201
    assert enroll.json()["status"] == "active"

    # Enrolling again returns the same enrollment
    again = client.post(f"/api/courses/{course.id}/enroll", headers=headers)
    assert again.json()["id"] == enroll.json()["id"]

    progress = client.put(f"/api/courses/{course.id}/progress", json={"progress": 100}, headers=headers)
    assert progress.status_code == 200
    assert progress.json()["status"] == "completed"
    assert progress.json()["completed_at"] is not None

    mine = client.get("/api/courses/enrollments/me", headers=headers).json()
    assert [e["course_id"] for e in mine] == [course.id]
    assert db_session.query(Enrollment).filter(Enrollment.status == EnrollmentStatus.COMPLETED).count() == 1


def test_enroll_in_paid_course_requires_payment(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor, price="499")
    response = client.post(f"/api/courses/{course.id}/enroll", headers=get_auth_headers_for(student))
    assert response.status_code == 402


def test_fully_discounted_course_is_free(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor, price="499", discount_price="0")
    response = client.post(f"/api/courses/{course.id}/enroll", headers=get_auth_headers_for(student))
    assert response.status_code == 201


def test_enroll_in_unpublished_course_is_404(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor, published=False)
    response = client.post(f"/api/courses/{course.id}/enroll", headers=get_auth_headers_for(student))
    assert response.status_code == 404


def test_progress_without_enrollment_is_404(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor)
    response = client.put(f"/api/courses/{course.id}/progress", json={"progress": 10}, headers=get_auth_headers_for(student))
    assert response.status_code == 404


def test_course_enrollments_visible_to_owner_only(client, instructor, student, make_course, get_auth_headers_for):
    course = make_course(instructor)
    client.post(f"/api/courses/{course.id}/enroll", headers=get_auth_headers_for(student))

    owner_view = client.get(f"/api/courses/{course.id}/enrollments", headers=get_auth_headers_for(instructor))
    assert owner_view.status_code == 200
    assert len(owner_view.json()) == 1
    assert client.get(f"/api/courses/{course.id}/enrollments", headers=get_auth_headers_for(student)).status_code == 403
