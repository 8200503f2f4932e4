import base64
import io
import logging
import os
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from fpdf import FPDF
from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import CertificateNotFoundError, CourseNotFoundError, ResourceNotFoundError
from backend.crud import certificate_crud, course_crud, notification_crud, user_crud
from backend.models.certificate_model import Certificate, CertificateTemplate, DigitalSignature
from backend.models.course_model import Course
from backend.models.enums import (
    CertificateOrientation, CertificateStatus, EmailTemplateType, EnrollmentStatus,
    NotificationCategory, PaperSize, SignatureType, VerificationStatus
)
from backend.models.user_model import User
from backend.schemas.analytics_schema import NotificationCreate
from backend.schemas.certificate_schema import (
    CertificateCreate, CertificateLayout, CertificateTemplateData, CertificateVerificationResult, TextElementLayout
)
from backend.services import email_service

logger = logging.getLogger(__name__)

SUBTITLE_TEXT = "This certificate is proudly presented to"
CORE_FONTS = {"helvetica", "times", "courier"}
PAPER_FORMATS = {PaperSize.A4: "A4", PaperSize.A3: "A3", PaperSize.LETTER: "Letter"}

# --- PDF rendering ---
def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    value = (value or "#000000").lstrip("#")
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)

def format_completion_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"

def _latin1(text: str) -> str:
    # Core PDF fonts only cover latin-1
    return (text or "").encode("latin-1", "replace").decode("latin-1")

def _font_family(name: str) -> str:
    family = (name or "").lower()
    if family in ("arial", "sans-serif"):
        return "helvetica"
    if family in ("times new roman", "serif"):
        return "times"
    return family if family in CORE_FONTS else "helvetica"

def _centered_text(pdf: FPDF, text: str, element: TextElementLayout, style: str = "") -> None:
    pdf.set_font(_font_family(element.font_family), style=style, size=element.font_size)
    pdf.set_text_color(*hex_to_rgb(element.color))
    text = _latin1(text)
    pdf.text(element.x - pdf.get_string_width(text) / 2, element.y, text)

def _image_source(data: str):
    """Data URIs become in-memory streams; paths and URLs are handed to fpdf2 as-is."""
    if data.startswith("data:"):
        _, encoded = data.split(",", 1)
        return io.BytesIO(base64.b64decode(encoded))
    return data

def render_certificate_pdf(
    certificate: Certificate,
    student: User,
    course: Course,
    template: Optional[CertificateTemplate] = None,
    signature: Optional[DigitalSignature] = None,
) -> bytes:
    """Draws the one-page certificate. Positions come from the template layout, in millimetres."""
    if template is not None:
        layout = CertificateTemplateData.model_validate(template.template_data or {}).layout
        orientation = template.orientation or CertificateOrientation.LANDSCAPE
        paper_size = template.paper_size or PaperSize.A4
        background_color = template.background_color or "#ffffff"
        background_image = template.background_image
    else:
        layout = CertificateLayout()
        orientation, paper_size, background_color, background_image = (
            CertificateOrientation.LANDSCAPE, PaperSize.A4, "#ffffff", None
        )

    pdf = FPDF(
        orientation="L" if orientation == CertificateOrientation.LANDSCAPE else "P",
        unit="mm",
        format=PAPER_FORMATS.get(paper_size, "A4"),
    )
    pdf.set_auto_page_break(False)
    pdf.add_page()
    page_width, page_height = pdf.w, pdf.h

    if background_color.lower() != "#ffffff":
        pdf.set_fill_color(*hex_to_rgb(background_color))
        pdf.rect(0, 0, page_width, page_height, style="F")

    if background_image:
        try:
            pdf.image(_image_source(background_image), x=0, y=0, w=page_width, h=page_height)
        except Exception as e:
            logger.warning(f"Background image could not be drawn for certificate {certificate.certificate_id}: {e}")

    _centered_text(pdf, certificate.title, layout.title, style="B")
    _centered_text(pdf, SUBTITLE_TEXT, layout.subtitle)
    _centered_text(pdf, student.name, layout.student_name, style="B")
    _centered_text(pdf, course.title, layout.course_name)
    _centered_text(pdf, format_completion_date(certificate.completion_date), layout.completion_date)
    _centered_text(pdf, f"Certificate ID: {certificate.certificate_id}", layout.certificate_id)

    if signature is not None:
        box = layout.signature
        try:
            if signature.signature_type == SignatureType.TEXT:
                pdf.set_font("times", style="I", size=max(8, int(box.height * 0.8)))
                pdf.set_text_color(0, 0, 0)
                pdf.text(box.x, box.y + box.height * 0.7, _latin1(signature.signature_data))
            else:
                pdf.image(_image_source(signature.signature_data), x=box.x, y=box.y, w=box.width, h=box.height)
        except Exception as e:
            logger.warning(f"Signature {signature.id} could not be drawn on certificate {certificate.certificate_id}: {e}")

    verify_text = f"Verify at: {settings.APP_URL}/certificates/verify/{certificate.verification_code}"
    pdf.set_font("helvetica", size=8)
    pdf.set_text_color(*hex_to_rgb("#666666"))
    pdf.text(page_width / 2 - pdf.get_string_width(verify_text) / 2, page_height - 10, verify_text)

    return bytes(pdf.output())

def certificate_file_path(certificate_id: str) -> str:
    return os.path.join(settings.CERTIFICATES_DIR, f"{certificate_id}.pdf")

def _write_pdf(certificate: Certificate, pdf_bytes: bytes) -> str:
    os.makedirs(settings.CERTIFICATES_DIR, exist_ok=True)
    path = certificate_file_path(certificate.certificate_id)
    with open(path, "wb") as f:
        f.write(pdf_bytes)
    logger.info(f"Certificate PDF written to {path} ({len(pdf_bytes)} bytes).")
    return path

# --- Issuance ---
def _resolve_template(db: Session, template_id: Optional[int]) -> Optional[CertificateTemplate]:
    if template_id is None:
        return certificate_crud.get_default_template(db)
    template = certificate_crud.get_template(db, template_id)
    if template is None or not template.is_active:
        raise ResourceNotFoundError(f"Certificate template {template_id} not found.")
    return template

def issue_certificate(db: Session, certificate_in: CertificateCreate) -> Certificate:
    """
    Issues a certificate for a completed enrollment, renders its PDF and notifies the student.
    Raises ValueError when the course is not completed or a certificate was already issued.
    """
    student = user_crud.get_user_by_id(db, certificate_in.user_id)
    if student is None:
        raise ResourceNotFoundError(f"User {certificate_in.user_id} not found.")
    course = course_crud.get_course(db, certificate_in.course_id)
    if course is None:
        raise CourseNotFoundError(f"Course {certificate_in.course_id} not found.")

    enrollment = course_crud.get_enrollment(db, student.id, course.id)
    if enrollment is None or enrollment.status != EnrollmentStatus.COMPLETED:
        raise ValueError("User has not completed this course.")
    if certificate_crud.get_issued_certificate(db, student.id, course.id) is not None:
        raise ValueError("Certificate already exists for this user and course.")

    template = _resolve_template(db, certificate_in.template_id)
    signature = certificate_crud.get_default_signature(db, course.instructor_id) if course.instructor_id else None

    certificate = certificate_crud.create_certificate(
        db,
        user_id=student.id,
        course_id=course.id,
        title=certificate_in.title,
        completion_date=enrollment.completed_at or datetime.now(timezone.utc),
        template_id=template.id if template else None,
        digital_signature_id=signature.id if signature else None,
        description=certificate_in.description,
        grade=certificate_in.grade,
        attendance_percentage=certificate_in.attendance_percentage,
        expiry_date=certificate_in.expiry_date,
    )

    _write_pdf(certificate, render_certificate_pdf(certificate, student, course, template, signature))
    certificate = certificate_crud.update_certificate_url(db, certificate, f"/certificates/{certificate.certificate_id}.pdf")

    course_crud.mark_certificate_issued(db, enrollment)

    email_service.send_templated_email(
        to_email=student.email,
        subject=f"Your certificate for {course.title}",
        html_template_name="certificate_issued.html",
        context={
            "user_name": student.name,
            "course_title": course.title,
            "certificate_id": certificate.certificate_id,
            "verification_url": f"{settings.APP_URL}/certificates/verify/{certificate.verification_code}",
        },
        template_type=EmailTemplateType.CERTIFICATE,
        tenant_id=student.tenant_id,
        db=db,
    )
    notification_crud.create_notification(db, NotificationCreate(
        user_id=student.id,
        title="Certificate issued",
        message=f"Your certificate for {course.title} is ready to download.",
        type="success",
        category=NotificationCategory.CERTIFICATE,
        action_url=f"/dashboard/certificates/{certificate.id}",
    ))
    return certificate

# --- Verification ---
def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def verify_certificate(
    db: Session, verification_code: str, verifier_ip: Optional[str] = None, verifier_user_agent: Optional[str] = None
) -> CertificateVerificationResult:
    """Public lookup by verification code. Every attempt is written to the verification log."""
    code = (verification_code or "").strip().upper()
    certificate = certificate_crud.get_certificate_by_verification_code(db, code)

    if certificate is None:
        status, message = VerificationStatus.INVALID, "Certificate not found."
    elif certificate.status == CertificateStatus.REVOKED:
        status, message = VerificationStatus.REVOKED, "This certificate has been revoked."
    elif certificate.status == CertificateStatus.EXPIRED or (
        certificate.expiry_date is not None and _as_utc(certificate.expiry_date) < datetime.now(timezone.utc)
    ):
        status, message = VerificationStatus.EXPIRED, "This certificate has expired."
    else:
        status, message = VerificationStatus.VALID, "Certificate is valid."

    certificate_crud.log_verification(
        db, code, status, certificate=certificate, verifier_ip=verifier_ip, verifier_user_agent=verifier_user_agent
    )

    if certificate is None:
        return CertificateVerificationResult(valid=False, status=status, message=message)
    return CertificateVerificationResult(
        valid=status == VerificationStatus.VALID,
        status=status,
        message=message,
        certificate_id=certificate.certificate_id,
        title=certificate.title,
        student_name=certificate.user.name if certificate.user else None,
        course_title=certificate.course.title if certificate.course else None,
        issued_at=certificate.issued_at,
        expiry_date=certificate.expiry_date,
    )

# --- Management ---
def get_certificate_or_404(db: Session, certificate_db_id: int) -> Certificate:
    certificate = certificate_crud.get_certificate_by_id(db, certificate_db_id)
    if certificate is None:
        raise CertificateNotFoundError(f"Certificate {certificate_db_id} not found.")
    return certificate

def revoke_certificate(db: Session, certificate_db_id: int, reason: str) -> Certificate:
    certificate = get_certificate_or_404(db, certificate_db_id)
    if certificate.status == CertificateStatus.REVOKED:
        raise ValueError("Certificate is already revoked.")
    certificate = certificate_crud.revoke_certificate(db, certificate, reason)
    course_title = certificate.course.title if certificate.course else "your course"
    notification_crud.create_notification(db, NotificationCreate(
        user_id=certificate.user_id,
        title="Certificate revoked",
        message=f"Your certificate for {course_title} was revoked: {reason}",
        type="warning",
        category=NotificationCategory.CERTIFICATE,
    ))
    return certificate

def get_certificate_file(db: Session, certificate: Certificate) -> str:
    """Path of the certificate's PDF, re-rendered when the stored file is missing. Counts the download."""
    path = certificate_file_path(certificate.certificate_id)
    if not os.path.exists(path):
        logger.warning(f"PDF for certificate {certificate.certificate_id} missing on disk; re-rendering.")
        _write_pdf(certificate, render_certificate_pdf(
            certificate, certificate.user, certificate.course, certificate.template, certificate.digital_signature
        ))
    certificate_crud.increment_download_count(db, certificate)
    return path

def get_user_certificates(db: Session, user_id: int) -> List[Certificate]:
    return certificate_crud.get_certificates_for_user(db, user_id)
