import asyncio

from backend.core.config import settings
from backend.core.rate_limit import InMemoryCounterStore, current_window, rate_limit_key
from backend.core.security import FIREBASE_TOKEN_PROVIDER
from backend.models.enums import UserRole
from backend.schemas.user_schema import TokenData


# --- Security headers ---
def test_security_headers_on_api_responses(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["Referrer-Policy"] == "origin-when-cross-origin"
    assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]
    assert response.headers["Strict-Transport-Security"].startswith("max-age=31536000")


def test_non_api_paths_get_headers_but_no_rate_limit(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.headers["X-Frame-Options"] == "DENY"
    assert "X-RateLimit-Limit" not in response.headers


# --- Rate limiting ---
def test_rate_limit_headers_count_down(client):
    first = client.get("/api/health")
    second = client.get("/api/health")
    assert first.headers["X-RateLimit-Limit"] == "100"
    assert first.headers["X-RateLimit-Remaining"] == "99"
    assert second.headers["X-RateLimit-Remaining"] == "98"


def test_rate_limit_rejects_the_101st_request(client):
    for _ in range(settings.RATE_LIMIT_REQUESTS):
        assert client.get("/api/health").status_code == 200

    response = client.get("/api/health")
    assert response.status_code == 429
    assert response.text == "Too Many Requests"
    assert response.headers["Retry-After"] == "900"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "X-RateLimit-Reset" in response.headers
    # Rejections still carry the security headers
    assert response.headers["X-Frame-Options"] == "DENY"


def test_rate_limit_is_tracked_per_forwarded_ip(client):
    for _ in range(settings.RATE_LIMIT_REQUESTS + 1):
        client.get("/api/health", headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

    blocked = client.get("/api/health", headers={"X-Forwarded-For": "203.0.113.7"})
    other = client.get("/api/health", headers={"X-Forwarded-For": "198.51.100.20"})
    assert blocked.status_code == 429
    assert other.status_code == 200


def test_in_memory_store_sweeps_stale_windows():
    store = InMemoryCounterStore(sweep_threshold=2)
    window = current_window(window_seconds=900)

    asyncio.run(store.incr(rate_limit_key("192.0.2.1", window - 5), 900))
    asyncio.run(store.incr(rate_limit_key("192.0.2.2", window - 4), 900))
    count = asyncio.run(store.incr(rate_limit_key("192.0.2.3", window), 900))

    assert count == 1
    assert len(store) == 1


# --- Auth gate ---
def test_protected_api_without_token_is_401(client):
    response = client.get("/api/courses/")
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_protected_api_with_garbage_token_is_401(client):
    response = client.get("/api/courses/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid authentication token."


def test_protected_page_redirects_to_signin(client):
    response = client.get("/dashboard/courses", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "/auth/signin?callbackUrl=%2Fdashboard%2Fcourses"


def test_admin_page_redirects_to_admin_signin(client):
    response = client.get("/admin/users", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"].startswith("/auth/admin?callbackUrl=")


def test_admin_api_forbidden_for_non_admin(client, student, get_auth_headers_for):
    response = client.get("/api/admin/users", headers=get_auth_headers_for(student))
    assert response.status_code == 403
    assert response.json()["detail"] == "Operation not permitted: Requires admin privileges."


def test_admin_gate_uses_account_role_for_firebase_tokens(client, db_session, admin, mocker):
    admin.firebase_uid = "fb-admin-001"
    db_session.commit()
    # Firebase ID token without a role claim
    mocker.patch(
        "backend.core.middleware.authenticate_token",
        return_value=TokenData(subject="fb-admin-001", email=admin.email, provider=FIREBASE_TOKEN_PROVIDER),
    )

    response = client.get("/api/admin/users", headers={"Authorization": "Bearer firebase-id-token"})

    assert response.status_code == 200
    assert response.json()["total"] == 1


def test_admin_gate_ignores_stale_role_claim(client, db_session, admin, get_auth_headers_for):
    headers = get_auth_headers_for(admin)
    admin.role = UserRole.STUDENT
    db_session.commit()

    response = client.get("/api/admin/users", headers=headers)
    assert response.status_code == 403


def test_public_paths_skip_the_gate(client):
    assert client.get("/api/health").status_code == 200
    # Certificate verification is open to anyone holding a code
    response = client.get("/api/certificates/verify/UNKNOWN123")
    assert response.status_code == 200
    assert response.json()["valid"] is False


# --- Webhook signature presence ---
def test_webhook_without_signature_header_is_rejected(client):
    response = client.post("/api/webhooks/razorpay", json={"event": "payment.captured"})
    assert response.status_code == 400
    assert response.text == "Missing Signature"


# --- Sensitive paths ---
def test_sensitive_post_requires_json_content_type(client, student, get_auth_headers_for):
    headers = {**get_auth_headers_for(student), "Content-Type": "text/plain"}
    response = client.post("/api/payments/create-order", content="amount=100", headers=headers)
    assert response.status_code == 400
    assert response.text == "Invalid Content Type"


def test_sensitive_path_requires_https_in_production(client, student, get_auth_headers_for, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    headers = get_auth_headers_for(student)

    plain = client.get("/api/payments/history", headers=headers)
    assert plain.status_code == 400
    assert plain.text == "HTTPS Required"

    secure = client.get("/api/payments/history", headers={**headers, "X-Forwarded-Proto": "https"})
    assert secure.status_code == 200
    assert secure.json() == []
