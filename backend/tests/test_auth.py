import pytest

from backend.core.config import settings
from backend.core.security import create_access_token, decode_app_token
from backend.models.enums import UserRole
from backend.models.user_model import User
from backend.schemas.user_schema import TokenData


@pytest.fixture
def firebase_identity(mocker):
    """Accepts any non-JWT bearer token as the Firebase identity below."""
    identity = TokenData(subject="firebase-uid-123", email="new.learner@example.com", provider="firebase")
    mocker.patch("backend.core.security.is_firebase_configured", return_value=True)
    verify = mocker.patch("backend.core.security.verify_firebase_id_token", return_value=identity)
    return verify


def test_app_token_round_trip():
    token = create_access_token(subject=42, email="someone@example.com", role=UserRole.INSTRUCTOR)
    data = decode_app_token(token)
    assert data.subject == "42"
    assert data.role == UserRole.INSTRUCTOR
    assert data.provider == "app"


def test_read_me(client, student, get_auth_headers_for):
    response = client.get("/api/auth/me", headers=get_auth_headers_for(student))
    assert response.status_code == 200
    body = response.json()
    assert body["email"] == student.email
    assert body["role"] == "student"


def test_read_me_without_token(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401


def test_valid_token_for_unknown_account_is_403(client):
    token = create_access_token(subject=9999, email="ghost@example.com")
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_inactive_user_is_403(client, make_user, get_auth_headers_for):
    inactive = make_user(UserRole.STUDENT, is_active=False)
    response = client.get("/api/auth/me", headers=get_auth_headers_for(inactive))
    assert response.status_code == 403
    assert response.json()["detail"] == "User account is inactive."


def test_update_me(client, student, get_auth_headers_for):
    response = client.put("/api/auth/me", json={"name": "Asha Renamed"}, headers=get_auth_headers_for(student))
    assert response.status_code == 200
    assert response.json()["name"] == "Asha Renamed"


# --- Registration of Firebase identities ---
def test_register_firebase_user(client, db_session, firebase_identity, mock_send_email):
    headers = {"Authorization": "Bearer firebase-id-token"}
    response = client.post("/api/auth/register", json={"name": "New Learner"}, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "new.learner@example.com"
    assert body["user"]["role"] == "student"
    firebase_identity.assert_called_once_with("firebase-id-token")

    user = db_session.query(User).filter(User.email == "new.learner@example.com").one()
    assert user.firebase_uid == "firebase-uid-123"
    mock_send_email.assert_called_once()

    # The same identity cannot register twice
    again = client.post("/api/auth/register", json={"name": "New Learner"}, headers=headers)
    assert again.status_code == 409


def test_register_with_app_token_is_conflict(client, student, get_auth_headers_for):
    response = client.post("/api/auth/register", json={"name": "Asha"}, headers=get_auth_headers_for(student))
    assert response.status_code == 409


def test_firebase_token_resolves_registered_user(client, firebase_identity):
    headers = {"Authorization": "Bearer firebase-id-token"}
    client.post("/api/auth/register", json={"name": "New Learner"}, headers=headers)

    response = client.get("/api/courses/enrollments/me", headers=headers)
    assert response.status_code == 200
    assert response.json() == []


# --- Development tokens ---
def test_development_token_can_be_used(client, instructor):
    response = client.post("/api/auth/token", json={"email": instructor.email})
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"
    assert body["expires_in"] == settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["role"] == "instructor"


def test_development_token_unknown_email(client):
    response = client.post("/api/auth/token", json={"email": "nobody@example.com"})
    assert response.status_code == 404


def test_development_token_disabled_in_production(client, student, monkeypatch):
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")
    response = client.post("/api/auth/token", json={"email": student.email})
    assert response.status_code == 404
