from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from backend.crud import analytics_crud, course_crud, payment_crud
from backend.models.analytics_model import AnalyticsEvent
from backend.models.enums import PaymentMethod, PaymentStatus, UserRole


@pytest.fixture
def activity(db_session, instructor, make_user, make_course):
    """Two tenants' worth of enrollments, one of them completed, plus one completed payment."""
    course = make_course(instructor, title="Corporate Finance")
    other_course = make_course(instructor, title="Behavioural Economics")
    acme_learner = make_user(UserRole.STUDENT, tenant_id="acme")
    other_learner = make_user(UserRole.STUDENT, tenant_id="globex")

    done = course_crud.create_enrollment(db_session, acme_learner.id, course.id)
    course_crud.update_enrollment_progress(db_session, done, 100)
    course_crud.create_enrollment(db_session, acme_learner.id, other_course.id)
    course_crud.create_enrollment(db_session, other_learner.id, course.id)

    payment = payment_crud.create_payment_record(
        db_session, user_id=acme_learner.id, amount=Decimal("118.00"), currency="INR",
        payment_method=PaymentMethod.RAZORPAY, order_id="order_an_001", invoice_id=None, course_id=course.id,
    )
    payment.status = PaymentStatus.COMPLETED
    db_session.commit()
    return {"course": course, "acme_learner": acme_learner, "other_learner": other_learner}


def test_resolve_date_range_defaults_and_validation():
    start, end = analytics_crud.resolve_date_range()
    assert end - start == timedelta(days=30)
    assert start.tzinfo is not None

    naive_start, _ = analytics_crud.resolve_date_range(datetime(2024, 1, 1), datetime(2024, 2, 1))
    assert naive_start.tzinfo == timezone.utc

    with pytest.raises(ValueError):
        analytics_crud.resolve_date_range(datetime(2024, 2, 1), datetime(2024, 1, 1))


def test_track_event_fills_defaults(client, db_session, student, get_auth_headers_for):
    response = client.post(
        "/api/analytics/events",
        json={"event_type": "page_view", "page": "/courses", "properties": {"category": "navigation"}},
        headers={**get_auth_headers_for(student), "X-Forwarded-For": "203.0.113.9"},
    )

    assert response.status_code == 201
    assert response.json()["success"] is True
    event = db_session.get(AnalyticsEvent, response.json()["id"])
    assert event.user_id == student.id
    assert event.event_category == "navigation"
    assert event.event_action == "page_view"
    assert event.ip_address == "203.0.113.9"


def test_overview_counts_enrollments_and_revenue(client, admin, activity, get_auth_headers_for):
    response = client.get("/api/analytics/overview", headers=get_auth_headers_for(admin))

    assert response.status_code == 200
    body = response.json()
    assert body["enrollments"] == {"total_enrollments": 3, "total_courses": 2, "total_students": 2}
    assert body["completion_rate"] == pytest.approx(33.33)
    assert Decimal(body["revenue"]["total_revenue"]) == Decimal("118.00")
    assert body["revenue"]["transactions"] == 1


def test_overview_scoped_to_tenant(client, admin, make_user, activity, get_auth_headers_for):
    scoped = client.get("/api/analytics/overview", params={"tenant_id": "globex"}, headers=get_auth_headers_for(admin)).json()
    assert scoped["enrollments"]["total_enrollments"] == 1
    assert scoped["revenue"]["transactions"] == 0

    # A tenant-bound admin cannot look outside their tenant
    acme_admin = make_user(UserRole.ADMIN, tenant_id="acme")
    forced = client.get("/api/analytics/overview", params={"tenant_id": "globex"}, headers=get_auth_headers_for(acme_admin)).json()
    assert forced["enrollments"]["total_enrollments"] == 2


def test_revenue_report(client, admin, activity, get_auth_headers_for):
    body = client.get("/api/analytics/revenue", headers=get_auth_headers_for(admin)).json()

    assert Decimal(body["overview"]["total_revenue"]) == Decimal("118.00")
    assert body["by_method"][0]["method"] == "razorpay"
    assert body["by_course"][0]["course_title"] == "Corporate Finance"
    assert len(body["trend"]) == 1


def test_engagement_report(client, admin, student, get_auth_headers_for):
    headers = get_auth_headers_for(student)
    client.post("/api/analytics/activity", json={"activity_type": "session"}, headers=headers)
    client.post("/api/analytics/events", json={"event_type": "search", "search_query": "pytorch"}, headers=headers)
    client.post("/api/analytics/events", json={"event_type": "search", "search_query": "pytorch"}, headers=headers)

    body = client.get("/api/analytics/engagement", headers=get_auth_headers_for(admin)).json()

    assert body["session_stats"] == {"total_sessions": 1, "unique_users": 1}
    assert body["search_terms"] == [{"term": "pytorch", "count": 2}]
    assert len(body["daily_active_users"]) == 1


def test_export(client, admin, activity, get_auth_headers_for):
    headers = get_auth_headers_for(admin)

    export = client.get("/api/analytics/export/overview", headers=headers)
    assert export.status_code == 200
    assert export.json()["export_type"] == "overview"
    assert export.json()["export_data"]["enrollments"]["total_enrollments"] == 3

    invalid = client.get("/api/analytics/export/students", headers=headers)
    assert invalid.status_code == 400


def test_course_and_learner_analytics(client, instructor, student, activity, get_auth_headers_for):
    course = activity["course"]
    course_report = client.get(f"/api/analytics/courses/{course.id}", headers=get_auth_headers_for(instructor))
    assert course_report.status_code == 200
    assert course_report.json()["enrollments"]["total"] == 2
    assert course_report.json()["enrollments"]["completed"] == 1

    learner = activity["acme_learner"]
    mine = client.get("/api/analytics/users/me", headers=get_auth_headers_for(learner)).json()
    assert mine["completion_stats"]["total"] == 2
    assert mine["completion_stats"]["completed"] == 1


def test_reports_are_admin_only(client, student, get_auth_headers_for):
    headers = get_auth_headers_for(student)
    for path in ("/api/analytics/overview", "/api/analytics/revenue", "/api/analytics/engagement", "/api/analytics/export/overview"):
        assert client.get(path, headers=headers).status_code == 403
