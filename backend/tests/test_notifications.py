from backend.crud import notification_crud
from backend.models.enums import NotificationCategory
from backend.schemas.analytics_schema import NotificationCreate


def _notify(db_session, user, title, **extra):
    return notification_crud.create_notification(
        db_session, NotificationCreate(user_id=user.id, title=title, message=f"{title} details", **extra)
    )


def test_list_newest_first_with_unread_count(client, db_session, student, get_auth_headers_for):
    _notify(db_session, student, "Welcome aboard")
    _notify(db_session, student, "Payment received", type="success", category=NotificationCategory.PAYMENT)

    response = client.get("/api/notifications/", headers=get_auth_headers_for(student))

    assert response.status_code == 200
    body = response.json()
    assert [n["title"] for n in body["notifications"]] == ["Payment received", "Welcome aboard"]
    assert body["notifications"][0]["category"] == "payment"
    assert body["unread_count"] == 2


def test_unknown_type_falls_back_to_info(db_session, student):
    notification = _notify(db_session, student, "Heads up", type="celebration")
    assert notification.type.value == "info"


def test_mark_single_and_all_read(client, db_session, student, get_auth_headers_for):
    first = _notify(db_session, student, "One")
    _notify(db_session, student, "Two")
    _notify(db_session, student, "Three")
    headers = get_auth_headers_for(student)

    single = client.post(f"/api/notifications/{first.id}/read", headers=headers)
    assert single.status_code == 200
    assert single.json()["is_read"] is True

    everything = client.post("/api/notifications/read-all", headers=headers)
    assert everything.json() == {"updated": 2}
    assert client.get("/api/notifications/", headers=headers).json()["unread_count"] == 0


def test_cannot_read_someone_elses_notification(client, db_session, student, make_user, get_auth_headers_for):
    notification = _notify(db_session, student, "Private")
    stranger = make_user()
    response = client.post(f"/api/notifications/{notification.id}/read", headers=get_auth_headers_for(stranger))
    assert response.status_code == 404


def test_admin_sends_notification(client, admin, student, get_auth_headers_for):
    payload = {"user_id": student.id, "title": "Maintenance tonight", "message": "The platform is down 01:00-02:00 IST.", "type": "warning"}

    response = client.post("/api/notifications/", json=payload, headers=get_auth_headers_for(admin))
    assert response.status_code == 201
    assert response.json()["type"] == "warning"

    denied = client.post("/api/notifications/", json=payload, headers=get_auth_headers_for(student))
    assert denied.status_code == 403
