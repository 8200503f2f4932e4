from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from backend.models.enums import (
    CertificateStatus, CertificateOrientation, PaperSize, SignatureType, VerificationStatus
)

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

# --- Template layout ---
# Coordinates and sizes are in millimetres from the top-left corner of the page.
class TextElementLayout(BaseModel):
    font_size: int = Field(..., gt=0, le=200)
    font_family: str = Field("Helvetica", max_length=50)
    color: str = Field("#000000", pattern=HEX_COLOR_PATTERN)
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)

class SignatureLayout(BaseModel):
    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)

class CertificateLayout(BaseModel):
    title: TextElementLayout = TextElementLayout(font_size=36, x=148.5, y=40)
    subtitle: TextElementLayout = TextElementLayout(font_size=16, color="#444444", x=148.5, y=60)
    student_name: TextElementLayout = TextElementLayout(font_size=28, x=148.5, y=85)
    course_name: TextElementLayout = TextElementLayout(font_size=20, x=148.5, y=110)
    completion_date: TextElementLayout = TextElementLayout(font_size=12, color="#444444", x=148.5, y=130)
    certificate_id: TextElementLayout = TextElementLayout(font_size=10, color="#666666", x=148.5, y=140)
    signature: SignatureLayout = SignatureLayout(x=200, y=150, width=60, height=25)

class CertificateTemplateData(BaseModel):
    layout: CertificateLayout = Field(default_factory=CertificateLayout)

# --- CertificateTemplate Schemas ---
class CertificateTemplateBase(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    template_data: CertificateTemplateData = Field(default_factory=CertificateTemplateData)
    preview_image: Optional[str] = Field(None, max_length=500)
    orientation: CertificateOrientation = CertificateOrientation.LANDSCAPE
    paper_size: PaperSize = PaperSize.A4
    background_color: str = Field("#ffffff", pattern=HEX_COLOR_PATTERN)
    background_image: Optional[str] = Field(None, max_length=500)
    is_default: bool = False

class CertificateTemplateCreate(CertificateTemplateBase):
    pass

class CertificateTemplateDisplay(CertificateTemplateBase):
    id: int
    is_active: bool
    created_by: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- DigitalSignature Schemas ---
class DigitalSignatureCreate(BaseModel):
    signature_type: SignatureType
    signature_data: str = Field(..., min_length=1, description="Data URI for image signatures, plain text otherwise")
    algorithm: Optional[str] = Field("RSA-SHA256", max_length=50)

class DigitalSignatureDisplay(BaseModel):
    id: int
    signer_id: int
    signature_type: SignatureType
    signature_data: str
    algorithm: Optional[str] = None
    is_default: bool
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

# --- Certificate Schemas ---
class CertificateCreate(BaseModel):
    user_id: int = Field(..., description="Student receiving the certificate")
    course_id: int
    template_id: Optional[int] = Field(None, description="Falls back to the default active template")
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    grade: Optional[str] = Field(None, max_length=50)
    attendance_percentage: Optional[int] = Field(None, ge=0, le=100)
    expiry_date: Optional[datetime] = None

class CertificateRevoke(BaseModel):
    reason: str = Field(..., min_length=3, max_length=1000)

class CertificateDisplay(BaseModel):
    id: int
    certificate_id: str
    verification_code: str
    user_id: int
    course_id: int
    template_id: Optional[int] = None
    digital_signature_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    grade: Optional[str] = None
    attendance_percentage: Optional[int] = None
    completion_date: datetime
    issued_at: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    certificate_url: Optional[str] = None
    status: CertificateStatus
    revoked_at: Optional[datetime] = None
    revoked_reason: Optional[str] = None
    download_count: int
    shared_count: int

    class Config:
        from_attributes = True

class CertificateVerificationResult(BaseModel):
    """Public answer to a verification request; never exposes more than the holder and course names."""
    valid: bool
    status: VerificationStatus
    message: str
    certificate_id: Optional[str] = None
    title: Optional[str] = None
    student_name: Optional[str] = None
    course_title: Optional[str] = None
    issued_at: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
