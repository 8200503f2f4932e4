import pytest
import requests

from backend.models.enums import UserRole
from backend.models.white_label_model import CustomDomain, WhiteLabelSettings


@pytest.fixture
def admin_headers(admin, get_auth_headers_for):
    return get_auth_headers_for(admin)


@pytest.fixture
def tenant(client, admin_headers):
    response = client.put(
        "/api/white-label/settings",
        json={"tenant_id": "acme-academy", "organization_name": "Acme Academy", "primary_color": "#ff6600"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture
def mock_requests_get(mocker):
    return mocker.patch("backend.services.white_label_service.requests.get")


# --- Settings ---
def test_settings_upsert_generates_tenant_and_replaces(client, db_session, admin_headers):
    created = client.put("/api/white-label/settings", json={"organization_name": "Bright Minds"}, headers=admin_headers)
    assert created.status_code == 200
    body = created.json()
    assert body["tenant_id"]
    assert body["features"]["live_classes"] is True
    assert body["billing_address"]["country"] == "IN"

    replaced = client.put(
        "/api/white-label/settings",
        json={"tenant_id": body["tenant_id"], "organization_name": "Bright Minds Academy", "limits": {"max_courses": 25}},
        headers=admin_headers,
    )
    assert replaced.json()["id"] == body["id"]
    assert replaced.json()["limits"]["max_courses"] == 25
    assert db_session.query(WhiteLabelSettings).count() == 1


def test_settings_validation(client, admin_headers):
    response = client.put(
        "/api/white-label/settings", json={"organization_name": "Acme", "primary_color": "orange"}, headers=admin_headers
    )
    assert response.status_code == 422
    assert response.json()["detail"].startswith("primary_color:")


def test_tenant_members_read_their_own_settings(client, tenant, make_user, get_auth_headers_for):
    member = make_user(UserRole.STUDENT, tenant_id="acme-academy")
    outsider = make_user(UserRole.STUDENT, tenant_id="other-tenant")

    own = client.get("/api/white-label/settings/acme-academy", headers=get_auth_headers_for(member))
    assert own.status_code == 200
    assert own.json()["primary_color"] == "#ff6600"
    assert client.get("/api/white-label/settings/acme-academy", headers=get_auth_headers_for(outsider)).status_code == 404


def test_only_admins_change_settings(client, student, get_auth_headers_for):
    response = client.put("/api/white-label/settings", json={"organization_name": "Rogue"}, headers=get_auth_headers_for(student))
    assert response.status_code == 403


# --- Custom domains ---
def test_add_domain_returns_dns_record(client, tenant, admin_headers):
    response = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": "Learn.Acme.com"}, headers=admin_headers
    )

    assert response.status_code == 201
    body = response.json()
    assert body["domain"] == "learn.acme.com"
    assert body["status"] == "pending"
    assert len(body["verification_token"]) == 64
    assert body["verification_record"] == f"TXT _verification.learn.acme.com {body['verification_token']}"

    duplicate = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": "learn.acme.com"}, headers=admin_headers
    )
    assert duplicate.status_code == 400


@pytest.mark.parametrize("domain", ["-bad.example.com", "example", "acme.c0m"])
def test_add_domain_rejects_malformed_names(client, tenant, admin_headers, domain):
    response = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": domain}, headers=admin_headers
    )
    assert response.status_code == 422
    assert response.json()["detail"].startswith("domain:")


def test_add_domain_for_unknown_tenant(client, admin_headers):
    response = client.post("/api/white-label/settings/ghost/domains", json={"domain": "ghost.example.com"}, headers=admin_headers)
    assert response.status_code == 404


def test_dns_verification_succeeds(client, db_session, tenant, admin_headers, mock_requests_get):
    domain = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": "learn.acme.com"}, headers=admin_headers
    ).json()
    mock_requests_get.return_value.json.return_value = {
        "Answer": [{"name": "_verification.learn.acme.com.", "type": 16, "data": f'"{domain["verification_token"]}"'}]
    }

    response = client.post(f"/api/white-label/domains/{domain['id']}/verify", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "verified"
    assert response.json()["last_verified_at"] is not None
    mock_requests_get.return_value.raise_for_status.assert_called_once()
    assert mock_requests_get.call_args.kwargs["params"] == {"name": "_verification.learn.acme.com", "type": "TXT"}
    assert db_session.query(WhiteLabelSettings).one().custom_domain_verified is True


def test_dns_verification_without_record_fails(client, tenant, admin_headers, mock_requests_get):
    domain = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": "learn.acme.com"}, headers=admin_headers
    ).json()
    mock_requests_get.return_value.json.return_value = {"Status": 3}

    body = client.post(f"/api/white-label/domains/{domain['id']}/verify", headers=admin_headers).json()

    assert body["status"] == "failed"
    assert body["error_message"] == "No TXT record found at _verification.learn.acme.com."


def test_file_verification(client, tenant, admin_headers, mock_requests_get):
    domain = client.post(
        "/api/white-label/settings/acme-academy/domains",
        json={"domain": "acme.com", "verification_method": "file"},
        headers=admin_headers,
    ).json()
    assert domain["verification_record"] == "acme.com/.well-known/verification.txt"
    mock_requests_get.return_value.status_code = 200
    mock_requests_get.return_value.text = domain["verification_token"] + "\n"

    body = client.post(f"/api/white-label/domains/{domain['id']}/verify", headers=admin_headers).json()

    assert body["status"] == "verified"
    assert mock_requests_get.call_args.args[0] == "https://acme.com/.well-known/verification.txt"


def test_unreachable_host_marks_domain_failed(client, db_session, tenant, admin_headers, mock_requests_get):
    domain = client.post(
        "/api/white-label/settings/acme-academy/domains",
        json={"domain": "acme.com", "verification_method": "file"},
        headers=admin_headers,
    ).json()
    mock_requests_get.side_effect = requests.exceptions.ConnectionError("connection refused")

    response = client.post(f"/api/white-label/domains/{domain['id']}/verify", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["error_message"] == "Verification request failed: connection refused"


def test_delete_domain(client, db_session, tenant, admin_headers):
    domain = client.post(
        "/api/white-label/settings/acme-academy/domains", json={"domain": "learn.acme.com"}, headers=admin_headers
    ).json()
    assert client.delete(f"/api/white-label/domains/{domain['id']}", headers=admin_headers).status_code == 204
    assert db_session.query(CustomDomain).count() == 0
    assert client.delete(f"/api/white-label/domains/{domain['id']}", headers=admin_headers).status_code == 404


# --- Email templates ---
def test_email_template_render_preview(client, tenant, admin_headers):
    template = client.post(
        "/api/white-label/email-templates",
        params={"tenant_id": "acme-academy"},
        json={
            "name": "Acme welcome",
            "subject": "Welcome to {{ organization }}, {{ user_name }}!",
            "html_content": "<p>Hello {{ user_name }}</p>",
            "text_content": "Hello {{ user_name }}",
            "variables": ["user_name", "organization"],
            "type": "welcome",
        },
        headers=admin_headers,
    )
    assert template.status_code == 201
    assert template.json()["tenant_id"] == "acme-academy"

    rendered = client.post(
        f"/api/white-label/email-templates/{template.json()['id']}/render",
        json={"variables": {"user_name": "Asha", "organization": "Acme"}},
        headers=admin_headers,
    )
    assert rendered.status_code == 200
    assert rendered.json() == {"subject": "Welcome to Acme, Asha!", "html": "<p>Hello Asha</p>", "text": "Hello Asha"}

    listed = client.get("/api/white-label/email-templates", params={"type": "welcome"}, headers=admin_headers).json()
    assert [t["name"] for t in listed] == ["Acme welcome"]


# --- Landing pages ---
def test_landing_page_publish_and_view_count(client, tenant, student, admin_headers, get_auth_headers_for):
    page = client.post(
        "/api/white-label/landing-pages",
        params={"tenant_id": "acme-academy"},
        json={
            "name": "Spring launch",
            "slug": "spring-launch",
            "title": "Learn finance this spring",
            "content": [{"type": "hero", "props": {"headline": "Start today"}}],
        },
        headers=admin_headers,
    )
    assert page.status_code == 201
    page_id = page.json()["id"]
    student_headers = get_auth_headers_for(student)
    public_url = "/api/white-label/landing-pages/public/spring-launch"

    assert client.get(public_url, params={"tenant_id": "acme-academy"}, headers=student_headers).status_code == 404

    client.post(f"/api/white-label/landing-pages/{page_id}/publish", headers=admin_headers)
    first = client.get(public_url, params={"tenant_id": "acme-academy"}, headers=student_headers)
    second = client.get(public_url, params={"tenant_id": "acme-academy"}, headers=student_headers)
    assert first.status_code == 200
    assert first.json()["content"][0]["props"]["headline"] == "Start today"
    assert second.json()["view_count"] == 2

    # Pages are scoped to their tenant
    assert client.get(public_url, headers=student_headers).status_code == 404


def test_landing_page_slug_must_be_kebab_case(client, admin_headers):
    response = client.post(
        "/api/white-label/landing-pages",
        json={"name": "Bad slug", "slug": "Bad Slug!", "title": "Nope"},
        headers=admin_headers,
    )
    assert response.status_code == 422
