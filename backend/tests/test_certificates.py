import os
from datetime import datetime, timedelta, timezone

import pytest

from backend.crud import course_crud
from backend.models.certificate_model import Certificate, CertificateVerification, DigitalSignature
from backend.models.enums import SignatureType, UserRole, VerificationStatus
from backend.services import certificate_service


@pytest.fixture
def issue(client, instructor, get_auth_headers_for):
    def _issue(enrollment, issuer=None, **extra):
        payload = {
            "user_id": enrollment.user_id,
            "course_id": enrollment.course_id,
            "title": "Certificate of Completion",
            **extra,
        }
        return client.post("/api/certificates/", json=payload, headers=get_auth_headers_for(issuer or instructor))

    return _issue


def test_issue_certificate(client, db_session, completed_enrollment, issue, certificates_dir, mock_send_email):
    response = issue(completed_enrollment, grade="A")

    assert response.status_code == 201
    body = response.json()
    assert body["certificate_id"].startswith("CERT-")
    assert len(body["verification_code"]) == 32
    assert body["status"] == "issued"
    assert body["certificate_url"] == f"/certificates/{body['certificate_id']}.pdf"

    pdf_path = certificates_dir / f"{body['certificate_id']}.pdf"
    assert pdf_path.read_bytes().startswith(b"%PDF")

    db_session.refresh(completed_enrollment)
    assert completed_enrollment.certificate_issued is True
    mock_send_email.assert_called_once()
    assert mock_send_email.call_args.kwargs["to_email"] == completed_enrollment.user.email


def test_certificate_is_issued_once(completed_enrollment, issue):
    issue(completed_enrollment)
    duplicate = issue(completed_enrollment)
    assert duplicate.status_code == 400
    assert duplicate.json()["detail"] == "Certificate already exists for this user and course."


def test_incomplete_course_cannot_be_certified(db_session, student, instructor, make_course, issue):
    course = make_course(instructor, title="Time Series Analysis")
    enrollment = course_crud.create_enrollment(db_session, student.id, course.id)
    course_crud.update_enrollment_progress(db_session, enrollment, 60)

    response = issue(enrollment)
    assert response.status_code == 400
    assert response.json()["detail"] == "User has not completed this course."


def test_only_the_course_instructor_or_admin_issues(completed_enrollment, make_user, admin, issue):
    other = make_user(UserRole.INSTRUCTOR)
    assert issue(completed_enrollment, issuer=other).status_code == 403
    assert issue(completed_enrollment, issuer=admin).status_code == 201


# --- Verification ---
def test_public_verification_logs_every_attempt(client, db_session, completed_enrollment, issue):
    code = issue(completed_enrollment).json()["verification_code"]

    response = client.get(f"/api/certificates/verify/{code.lower()}", headers={"User-Agent": "verifier-bot"})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["status"] == "valid"
    assert body["student_name"] == "Asha Student"
    assert body["course_title"] == "Machine Learning Foundations"

    entry = db_session.query(CertificateVerification).one()
    assert entry.verification_code == code
    assert entry.status == VerificationStatus.VALID
    assert entry.verifier_user_agent == "verifier-bot"


def test_unknown_code_is_invalid_not_404(client, db_session):
    response = client.get("/api/certificates/verify/NOPE")
    assert response.status_code == 200
    assert response.json() == {
        "valid": False, "status": "invalid", "message": "Certificate not found.",
        "certificate_id": None, "title": None, "student_name": None,
        "course_title": None, "issued_at": None, "expiry_date": None,
    }
    assert db_session.query(CertificateVerification).one().certificate_id is None


def test_expired_certificate(client, completed_enrollment, issue):
    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    code = issue(completed_enrollment, expiry_date=yesterday).json()["verification_code"]

    body = client.get(f"/api/certificates/verify/{code}").json()
    assert body["valid"] is False
    assert body["status"] == "expired"


# --- Revocation ---
def test_revoke_certificate(client, student, completed_enrollment, issue, get_auth_headers_for, instructor):
    certificate = issue(completed_enrollment).json()
    headers = get_auth_headers_for(instructor)

    revoked = client.post(f"/api/certificates/{certificate['id']}/revoke", json={"reason": "Academic misconduct"}, headers=headers)
    assert revoked.status_code == 200
    assert revoked.json()["status"] == "revoked"
    assert revoked.json()["revoked_reason"] == "Academic misconduct"

    verification = client.get(f"/api/certificates/verify/{certificate['verification_code']}").json()
    assert verification["status"] == "revoked"

    again = client.post(f"/api/certificates/{certificate['id']}/revoke", json={"reason": "Academic misconduct"}, headers=headers)
    assert again.status_code == 400

    notifications = client.get("/api/notifications/", headers=get_auth_headers_for(student)).json()
    assert notifications["notifications"][0]["title"] == "Certificate revoked"


def test_other_instructor_cannot_revoke(client, completed_enrollment, issue, make_user, get_auth_headers_for):
    certificate = issue(completed_enrollment).json()
    other = make_user(UserRole.INSTRUCTOR)
    response = client.post(
        f"/api/certificates/{certificate['id']}/revoke", json={"reason": "No reason"}, headers=get_auth_headers_for(other)
    )
    assert response.status_code == 403


# --- Access & download ---
def test_download_counts_and_re_renders_missing_files(client, db_session, student, make_user, completed_enrollment, issue, get_auth_headers_for, certificates_dir):
    certificate = issue(completed_enrollment).json()
    headers = get_auth_headers_for(student)
    os.remove(certificates_dir / f"{certificate['certificate_id']}.pdf")

    response = client.get(f"/api/certificates/{certificate['id']}/download", headers=headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    assert db_session.get(Certificate, certificate["id"]).download_count == 1

    stranger = make_user()
    assert client.get(f"/api/certificates/{certificate['id']}/download", headers=get_auth_headers_for(stranger)).status_code == 404
    assert client.get(f"/api/certificates/{certificate['id']}", headers=get_auth_headers_for(stranger)).status_code == 404


def test_listing_my_and_course_certificates(client, student, instructor, completed_enrollment, issue, get_auth_headers_for):
    certificate = issue(completed_enrollment).json()

    mine = client.get("/api/certificates/me", headers=get_auth_headers_for(student)).json()
    assert [c["id"] for c in mine] == [certificate["id"]]

    course_list = client.get(
        f"/api/certificates/course/{completed_enrollment.course_id}", headers=get_auth_headers_for(instructor)
    )
    assert course_list.status_code == 200
    assert len(course_list.json()) == 1


# --- Templates & signatures ---
def test_default_template_and_signature_are_applied(client, db_session, admin, instructor, completed_enrollment, issue, get_auth_headers_for):
    template = client.post(
        "/api/certificates/templates",
        json={"name": "Classic Gold", "background_color": "#fdf6e3", "orientation": "portrait", "is_default": True},
        headers=get_auth_headers_for(admin),
    )
    assert template.status_code == 201

    signature = client.post(
        "/api/certificates/signatures",
        json={"signature_type": "text", "signature_data": "Ravi Instructor"},
        headers=get_auth_headers_for(instructor),
    )
    assert signature.status_code == 201
    assert signature.json()["is_default"] is True

    body = issue(completed_enrollment).json()
    assert body["template_id"] == template.json()["id"]
    assert body["digital_signature_id"] == signature.json()["id"]


def test_students_cannot_manage_templates(client, student, get_auth_headers_for):
    headers = get_auth_headers_for(student)
    assert client.get("/api/certificates/templates", headers=headers).status_code == 403
    assert client.post("/api/certificates/templates", json={"name": "Student Template"}, headers=headers).status_code == 403


def test_render_pdf_with_text_signature(db_session, student, instructor, make_course):
    course = make_course(instructor, title="Statistique appliquée")
    certificate = Certificate(
        certificate_id="CERT-TEST-0001",
        verification_code="A" * 32,
        user_id=student.id,
        course_id=course.id,
        title="Certificate of Completion",
        completion_date=datetime(2024, 3, 9, tzinfo=timezone.utc),
    )
    signature = DigitalSignature(id=1, signer_id=instructor.id, signature_type=SignatureType.TEXT, signature_data="R. Instructor")

    pdf = certificate_service.render_certificate_pdf(certificate, student, course, signature=signature)

    assert pdf.startswith(b"%PDF")
    assert certificate_service.format_completion_date(certificate.completion_date) == "March 9, 2024"
