from sqlalchemy import (
    Column, Integer, String, Text, Boolean, TIMESTAMP, ForeignKey, JSON, Enum as SAEnum
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import secrets
import time

from backend.core.database import Base
from backend.models.enums import (
    CertificateStatus, CertificateOrientation, PaperSize, SignatureType, VerificationStatus
)

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))

def generate_certificate_id() -> str:
    """Public certificate identifier, e.g. CERT-LXYZ1234-9F2C01AB."""
    timestamp_ms = int(time.time() * 1000)
    return f"CERT-{_to_base36(timestamp_ms)}-{secrets.token_hex(4)}".upper()

def generate_verification_code() -> str:
    """Generates the 32-character code printed on a certificate for public verification."""
    return secrets.token_hex(16).upper()

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("certificate_templates.id", ondelete="SET NULL"), nullable=True)
    digital_signature_id = Column(Integer, ForeignKey("digital_signatures.id", ondelete="SET NULL"), nullable=True)

    certificate_id = Column(String(64), unique=True, nullable=False, default=generate_certificate_id, index=True)
    verification_code = Column(String(32), unique=True, nullable=False, default=generate_verification_code, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    grade = Column(String(50), nullable=True)
    attendance_percentage = Column(Integer, nullable=True)
    completion_date = Column(TIMESTAMP(timezone=True), nullable=False)
    issued_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    expiry_date = Column(TIMESTAMP(timezone=True), nullable=True)

    certificate_url = Column(String(500), nullable=True) # Set once the PDF is rendered
    metadata_ = Column("metadata", JSON, nullable=True)

    status = Column(SAEnum(CertificateStatus, name="certificate_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=CertificateStatus.ISSUED, index=True)
    revoked_at = Column(TIMESTAMP(timezone=True), nullable=True)
    revoked_reason = Column(Text, nullable=True)
    download_count = Column(Integer, nullable=False, default=0)
    shared_count = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="certificates", foreign_keys=[user_id])
    course = relationship("Course", back_populates="issued_certificates")
    template = relationship("CertificateTemplate")
    digital_signature = relationship("DigitalSignature")
    verifications = relationship("CertificateVerification", back_populates="certificate", cascade="all, delete-orphan")

    # Only one *issued* certificate per user/course pair; enforced in certificate_service since
    # revoked certificates may coexist with a re-issued one.

    def __repr__(self):
        return f"<Certificate(id={self.id}, certificate_id='{self.certificate_id}', user_id={self.user_id}, course_id={self.course_id}, status='{self.status}')>"

class CertificateTemplate(Base):
    __tablename__ = "certificate_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    template_data = Column(JSON, nullable=False) # {"layout": {...}} positions in millimetres
    preview_image = Column(String(500), nullable=True)
    orientation = Column(SAEnum(CertificateOrientation, name="certificate_orientation_enum", values_callable=lambda obj: [e.value for e in obj]),
                         nullable=False, default=CertificateOrientation.LANDSCAPE)
    paper_size = Column(SAEnum(PaperSize, name="paper_size_enum", values_callable=lambda obj: [e.value for e in obj]),
                        nullable=False, default=PaperSize.A4)
    background_color = Column(String(7), nullable=True, default="#ffffff")
    background_image = Column(String(500), nullable=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<CertificateTemplate(id={self.id}, name='{self.name}', default={self.is_default})>"

class DigitalSignature(Base):
    __tablename__ = "digital_signatures"

    id = Column(Integer, primary_key=True, index=True)
    signer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    signature_type = Column(SAEnum(SignatureType, name="signature_type_enum", values_callable=lambda obj: [e.value for e in obj]),
                            nullable=False)
    signature_data = Column(Text, nullable=False) # Base64 data URI for images, plain text otherwise
    algorithm = Column(String(50), nullable=True, default="RSA-SHA256")
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<DigitalSignature(id={self.id}, signer_id={self.signer_id}, type='{self.signature_type}')>"

class CertificateVerification(Base):
    __tablename__ = "certificate_verifications"

    id = Column(Integer, primary_key=True, index=True)
    # NULL when the code did not match any certificate
    certificate_id = Column(Integer, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=True, index=True)
    verification_code = Column(String(64), nullable=False, index=True)
    verifier_ip = Column(String(64), nullable=True)
    verifier_user_agent = Column(String(500), nullable=True)
    status = Column(SAEnum(VerificationStatus, name="verification_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False)
    verified_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    certificate = relationship("Certificate", back_populates="verifications")

    def __repr__(self):
        return f"<CertificateVerification(id={self.id}, code='{self.verification_code}', status='{self.status}')>"
