from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session
from typing import List
import logging

from backend.core.database import get_db
from backend.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_current_instructor_or_admin,
    get_course_owner_or_admin,
    is_owner_or_admin,
)
from backend.core.middleware import get_client_ip
from backend.crud import certificate_crud, course_crud
from backend.models.certificate_model import Certificate
from backend.models.course_model import Course
from backend.models.user_model import User
from backend.schemas import certificate_schema as schemas
from backend.services import certificate_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/certificates", tags=["Certificates"])

def _can_manage(user: User, certificate: Certificate) -> bool:
    """Admins and the instructor of the certificate's course."""
    instructor_id = certificate.course.instructor_id if certificate.course else None
    return is_owner_or_admin(user, instructor_id)

# --- Public verification ---
@router.get("/verify/{verification_code}", response_model=schemas.CertificateVerificationResult)
def verify_certificate_by_code(verification_code: str, request: Request, db: Session = Depends(get_db)):
    """
    Public: check a certificate by its verification code. Unknown codes answer
    valid=false rather than 404; every attempt is logged.
    """
    return certificate_service.verify_certificate(
        db,
        verification_code,
        verifier_ip=get_client_ip(request),
        verifier_user_agent=request.headers.get("user-agent"),
    )

# --- Templates ---
@router.get("/templates", response_model=List[schemas.CertificateTemplateDisplay])
def read_certificate_templates(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    return certificate_crud.get_active_templates(db)

@router.post("/templates", response_model=schemas.CertificateTemplateDisplay, status_code=status.HTTP_201_CREATED)
def create_certificate_template(
    template_in: schemas.CertificateTemplateCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: add a template. Marking it default clears the previous default."""
    logger.info(f"Admin {current_admin.email} creating certificate template '{template_in.name}'")
    return certificate_crud.create_template(db, template_in, created_by=current_admin.id)

# --- Signatures ---
@router.get("/signatures", response_model=List[schemas.DigitalSignatureDisplay])
def read_my_signatures(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    return certificate_crud.get_signatures_for_signer(db, current_user.id)

@router.post("/signatures", response_model=schemas.DigitalSignatureDisplay, status_code=status.HTTP_201_CREATED)
def create_my_signature(
    signature_in: schemas.DigitalSignatureCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """Register a signature for the caller; the newest one becomes their default."""
    return certificate_crud.create_signature(db, current_user.id, signature_in)

# --- Issuance & listing ---
@router.post("/", response_model=schemas.CertificateDisplay, status_code=status.HTTP_201_CREATED)
def issue_new_certificate(
    certificate_in: schemas.CertificateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """
    Issue a certificate for a student who completed the course. (Course instructor or Admin)
    """
    course = course_crud.get_course(db, certificate_in.course_id)
    if course is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Course with ID {certificate_in.course_id} not found.")
    if not is_owner_or_admin(current_user, course.instructor_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to issue certificates for this course.")
    logger.info(f"User {current_user.email} issuing certificate for user {certificate_in.user_id} on course {course.id}")
    return certificate_service.issue_certificate(db, certificate_in)

@router.get("/me", response_model=List[schemas.CertificateDisplay])
def read_my_certificates(db: Session = Depends(get_db), current_user: User = Depends(get_current_active_user)):
    return certificate_service.get_user_certificates(db, current_user.id)

@router.get("/course/{course_id}", response_model=List[schemas.CertificateDisplay])
def read_course_certificates(
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    return certificate_crud.get_certificates_for_course(db, course.id)

@router.get("/{certificate_id}", response_model=schemas.CertificateDisplay)
def read_certificate(
    certificate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    certificate = certificate_service.get_certificate_or_404(db, certificate_id)
    if certificate.user_id != current_user.id and not _can_manage(current_user, certificate):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Certificate {certificate_id} not found.")
    return certificate

@router.get("/{certificate_id}/download")
def download_certificate(
    certificate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """PDF of the certificate. Available to its holder and admins."""
    certificate = certificate_service.get_certificate_or_404(db, certificate_id)
    if not is_owner_or_admin(current_user, certificate.user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Certificate {certificate_id} not found.")
    path = certificate_service.get_certificate_file(db, certificate)
    return FileResponse(path, media_type="application/pdf", filename=f"certificate-{certificate.certificate_id}.pdf")

@router.post("/{certificate_id}/revoke", response_model=schemas.CertificateDisplay)
def revoke_existing_certificate(
    certificate_id: int,
    revoke_in: schemas.CertificateRevoke,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_instructor_or_admin)
):
    """Revoke a certificate. (Course instructor or Admin)"""
    certificate = certificate_service.get_certificate_or_404(db, certificate_id)
    if not _can_manage(current_user, certificate):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized to revoke this certificate.")
    logger.info(f"User {current_user.email} revoking certificate {certificate.certificate_id}")
    return certificate_service.revoke_certificate(db, certificate.id, revoke_in.reason)
