from backend.models.enums import UserRole


def test_list_users_with_filters(client, admin, student, instructor, make_user, get_auth_headers_for):
    make_user(UserRole.STUDENT, tenant_id="acme", is_active=False)
    headers = get_auth_headers_for(admin)

    everyone = client.get("/api/admin/users", headers=headers).json()
    assert everyone["total"] == 4
    assert everyone["page"] == 1

    students = client.get("/api/admin/users", params={"role": "student"}, headers=headers).json()
    assert students["total"] == 2

    inactive = client.get("/api/admin/users", params={"is_active": False, "tenant_id": "acme"}, headers=headers).json()
    assert inactive["total"] == 1

    by_email = client.get("/api/admin/users", params={"email_contains": "INSTRUCTOR"}, headers=headers).json()
    assert [u["id"] for u in by_email["users"]] == [instructor.id]

    paged = client.get("/api/admin/users", params={"page_offset": 2, "page_size": 2}, headers=headers).json()
    assert paged["page"] == 2
    assert len(paged["users"]) == 2


def test_admin_updates_role_and_status(client, admin, student, get_auth_headers_for):
    headers = get_auth_headers_for(admin)

    promoted = client.put(f"/api/admin/users/{student.id}", json={"role": "instructor"}, headers=headers)
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "instructor"

    deactivated = client.put(f"/api/admin/users/{student.id}", json={"is_active": False}, headers=headers)
    assert deactivated.json()["is_active"] is False
    assert client.get("/api/auth/me", headers=get_auth_headers_for(student)).status_code == 403


def test_admin_cannot_deactivate_self(client, admin, get_auth_headers_for):
    response = client.put(f"/api/admin/users/{admin.id}", json={"is_active": False}, headers=get_auth_headers_for(admin))
    assert response.status_code == 400


def test_update_unknown_user(client, admin, get_auth_headers_for):
    response = client.put("/api/admin/users/9999", json={"role": "admin"}, headers=get_auth_headers_for(admin))
    assert response.status_code == 404


def test_get_single_user(client, admin, student, get_auth_headers_for):
    headers = get_auth_headers_for(admin)
    assert client.get(f"/api/admin/users/{student.id}", headers=headers).json()["email"] == student.email
    assert client.get("/api/admin/users/9999", headers=headers).status_code == 404


def test_admin_panel_is_admin_only(client, instructor, get_auth_headers_for):
    response = client.get("/api/admin/users", headers=get_auth_headers_for(instructor))
    assert response.status_code == 403
