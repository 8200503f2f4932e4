from sqlalchemy.orm import Session, joinedload
from typing import List, Optional
import logging
from datetime import datetime, timezone

from backend.core.database import commit_or_rollback
from backend.models.certificate_model import (
    Certificate, CertificateTemplate, DigitalSignature, CertificateVerification
)
from backend.models.enums import CertificateStatus, VerificationStatus
from backend.schemas import certificate_schema as schemas

logger = logging.getLogger(__name__)

# --- Certificates ---
def create_certificate(
    db: Session,
    user_id: int,
    course_id: int,
    title: str,
    completion_date: datetime,
    template_id: Optional[int] = None,
    digital_signature_id: Optional[int] = None,
    description: Optional[str] = None,
    grade: Optional[str] = None,
    attendance_percentage: Optional[int] = None,
    expiry_date: Optional[datetime] = None,
    metadata: Optional[dict] = None,
) -> Certificate:
    """Inserts an issued certificate. certificate_id and verification_code come from the column defaults."""
    new_certificate = Certificate(
        user_id=user_id,
        course_id=course_id,
        template_id=template_id,
        digital_signature_id=digital_signature_id,
        title=title,
        description=description,
        grade=grade,
        attendance_percentage=attendance_percentage,
        completion_date=completion_date,
        expiry_date=expiry_date,
        metadata_=metadata,
        status=CertificateStatus.ISSUED,
    )
    db.add(new_certificate)
    commit_or_rollback(db, new_certificate)
    logger.info(f"Certificate {new_certificate.certificate_id} (ID: {new_certificate.id}) created for user {user_id}, course {course_id}.")
    return new_certificate

def get_certificate_by_id(db: Session, certificate_db_id: int) -> Optional[Certificate]:
    return db.query(Certificate).filter(Certificate.id == certificate_db_id).first()

def get_certificate_by_public_id(db: Session, certificate_id: str) -> Optional[Certificate]:
    return db.query(Certificate).filter(Certificate.certificate_id == certificate_id).first()

def get_certificate_by_verification_code(db: Session, verification_code: str) -> Optional[Certificate]:
    logger.debug(f"Fetching certificate by verification code: {verification_code}")
    return (
        db.query(Certificate)
        .options(joinedload(Certificate.user), joinedload(Certificate.course))
        .filter(Certificate.verification_code == verification_code)
        .first()
    )

def get_issued_certificate(db: Session, user_id: int, course_id: int) -> Optional[Certificate]:
    return db.query(Certificate).filter(
        Certificate.user_id == user_id,
        Certificate.course_id == course_id,
        Certificate.status == CertificateStatus.ISSUED,
    ).first()

def get_certificates_for_user(db: Session, user_id: int) -> List[Certificate]:
    return (
        db.query(Certificate)
        .filter(Certificate.user_id == user_id)
        .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        .all()
    )

def get_certificates_for_course(db: Session, course_id: int) -> List[Certificate]:
    return (
        db.query(Certificate)
        .filter(Certificate.course_id == course_id)
        .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        .all()
    )

def update_certificate_url(db: Session, certificate: Certificate, certificate_url: str) -> Certificate:
    certificate.certificate_url = certificate_url
    commit_or_rollback(db, certificate)
    logger.info(f"Certificate {certificate.certificate_id} URL set to {certificate_url}.")
    return certificate

def revoke_certificate(db: Session, certificate: Certificate, reason: str) -> Certificate:
    certificate.status = CertificateStatus.REVOKED
    certificate.revoked_at = datetime.now(timezone.utc)
    certificate.revoked_reason = reason
    commit_or_rollback(db, certificate)
    logger.info(f"Certificate {certificate.certificate_id} revoked: {reason}")
    return certificate

def increment_download_count(db: Session, certificate: Certificate) -> Certificate:
    certificate.download_count = (certificate.download_count or 0) + 1
    commit_or_rollback(db, certificate)
    return certificate

# --- Verification audit log ---
def log_verification(
    db: Session,
    verification_code: str,
    status: VerificationStatus,
    certificate: Optional[Certificate] = None,
    verifier_ip: Optional[str] = None,
    verifier_user_agent: Optional[str] = None,
) -> CertificateVerification:
    entry = CertificateVerification(
        certificate_id=certificate.id if certificate else None,
        verification_code=verification_code,
        verifier_ip=verifier_ip,
        verifier_user_agent=(verifier_user_agent or "")[:500] or None,
        status=status,
    )
    db.add(entry)
    commit_or_rollback(db, entry)
    logger.info(f"Verification attempt for code {verification_code}: {status.value} (from {verifier_ip}).")
    return entry

def get_verifications_for_certificate(db: Session, certificate_db_id: int) -> List[CertificateVerification]:
    return (
        db.query(CertificateVerification)
        .filter(CertificateVerification.certificate_id == certificate_db_id)
        .order_by(CertificateVerification.id.desc())
        .all()
    )

# --- Templates ---
def _clear_default_templates(db: Session) -> None:
    db.query(CertificateTemplate).filter(CertificateTemplate.is_default == True).update(
        {CertificateTemplate.is_default: False}, synchronize_session="fetch"
    )

def create_template(db: Session, template_in: schemas.CertificateTemplateCreate, created_by: Optional[int]) -> CertificateTemplate:
    if template_in.is_default:
        _clear_default_templates(db)
    db_template = CertificateTemplate(
        **template_in.model_dump(exclude={"template_data"}),
        template_data=template_in.template_data.model_dump(),
        created_by=created_by,
        is_active=True,
    )
    db.add(db_template)
    commit_or_rollback(db, db_template)
    logger.info(f"Certificate template '{db_template.name}' (ID: {db_template.id}, default: {db_template.is_default}) created.")
    return db_template

def get_template(db: Session, template_id: int) -> Optional[CertificateTemplate]:
    return db.query(CertificateTemplate).filter(CertificateTemplate.id == template_id).first()

def get_default_template(db: Session) -> Optional[CertificateTemplate]:
    return db.query(CertificateTemplate).filter(
        CertificateTemplate.is_default == True, CertificateTemplate.is_active == True
    ).first()

def get_active_templates(db: Session) -> List[CertificateTemplate]:
    return (
        db.query(CertificateTemplate)
        .filter(CertificateTemplate.is_active == True)
        .order_by(CertificateTemplate.is_default.desc(), CertificateTemplate.name)
        .all()
    )

# --- Digital signatures ---
def create_signature(db: Session, signer_id: int, signature_in: schemas.DigitalSignatureCreate) -> DigitalSignature:
    """The newest signature becomes the signer's default."""
    db.query(DigitalSignature).filter(
        DigitalSignature.signer_id == signer_id, DigitalSignature.is_default == True
    ).update({DigitalSignature.is_default: False}, synchronize_session="fetch")
    db_signature = DigitalSignature(
        **signature_in.model_dump(), signer_id=signer_id, is_default=True, is_active=True
    )
    db.add(db_signature)
    commit_or_rollback(db, db_signature)
    logger.info(f"Digital signature {db_signature.id} ({db_signature.signature_type.value}) created for signer {signer_id}.")
    return db_signature

def get_signatures_for_signer(db: Session, signer_id: int) -> List[DigitalSignature]:
    return (
        db.query(DigitalSignature)
        .filter(DigitalSignature.signer_id == signer_id, DigitalSignature.is_active == True)
        .order_by(DigitalSignature.is_default.desc(), DigitalSignature.id.desc())
        .all()
    )

def get_default_signature(db: Session, signer_id: int) -> Optional[DigitalSignature]:
    return db.query(DigitalSignature).filter(
        DigitalSignature.signer_id == signer_id,
        DigitalSignature.is_default == True,
        DigitalSignature.is_active == True,
    ).first()
