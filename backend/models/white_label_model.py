from sqlalchemy import (
    Column, Integer, String, Text, Boolean, ForeignKey, TIMESTAMP, DECIMAL, JSON,
    Enum as SAEnum, UniqueConstraint
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import secrets

from backend.core.database import Base
from backend.models.enums import (
    DomainStatus, DomainVerificationMethod, EmailTemplateType, TimeFormat
)

def generate_tenant_id() -> str:
    return secrets.token_hex(16)

class WhiteLabelSettings(Base):
    __tablename__ = "white_label_settings"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), unique=True, nullable=False, default=generate_tenant_id, index=True)
    organization_name = Column(String(255), nullable=False)
    domain = Column(String(255), unique=True, nullable=True)
    subdomain = Column(String(100), unique=True, nullable=True)

    # Branding
    logo = Column(String(500), nullable=True)
    logo_light = Column(String(500), nullable=True)
    logo_dark = Column(String(500), nullable=True)
    favicon = Column(String(500), nullable=True)
    primary_color = Column(String(7), nullable=False, default="#3b82f6")
    secondary_color = Column(String(7), nullable=False, default="#1e293b")
    accent_color = Column(String(7), nullable=False, default="#06b6d4")
    background_color = Column(String(7), nullable=False, default="#ffffff")
    text_color = Column(String(7), nullable=False, default="#1f2937")
    custom_css = Column(Text, nullable=True)
    custom_js = Column(Text, nullable=True)
    header_html = Column(Text, nullable=True)
    footer_html = Column(Text, nullable=True)

    # SEO
    seo_title = Column(String(255), nullable=True)
    seo_description = Column(Text, nullable=True)
    seo_keywords = Column(Text, nullable=True)

    # Structured blocks; shapes are defined by the pydantic models in white_label_schema
    social_links = Column(JSON, nullable=True)
    contact_info = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    payment_methods = Column(JSON, nullable=True)
    features = Column(JSON, nullable=True)
    limits = Column(JSON, nullable=True)

    # Localisation & billing
    currency = Column(String(10), nullable=False, default="INR")
    timezone = Column(String(64), nullable=False, default="Asia/Kolkata")
    date_format = Column(String(20), nullable=False, default="DD/MM/YYYY")
    time_format = Column(SAEnum(TimeFormat, name="time_format_enum", values_callable=lambda obj: [e.value for e in obj]),
                         nullable=False, default=TimeFormat.TWENTY_FOUR_HOUR)
    language = Column(String(10), nullable=False, default="en")
    tax_rate = Column(DECIMAL(5, 2), nullable=False, default=0)
    tax_number = Column(String(64), nullable=True)

    custom_domain_verified = Column(Boolean, nullable=False, default=False)
    ssl_enabled = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    custom_domains = relationship("CustomDomain", back_populates="settings", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<WhiteLabelSettings(id={self.id}, tenant_id='{self.tenant_id}', organization='{self.organization_name}')>"

class CustomDomain(Base):
    __tablename__ = "custom_domains"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("white_label_settings.tenant_id", ondelete="CASCADE"), nullable=False, index=True)
    domain = Column(String(255), unique=True, nullable=False)
    subdomain = Column(String(100), nullable=True)
    status = Column(SAEnum(DomainStatus, name="domain_status_enum", values_callable=lambda obj: [e.value for e in obj]),
                    nullable=False, default=DomainStatus.PENDING)
    verification_method = Column(SAEnum(DomainVerificationMethod, name="domain_verification_method_enum", values_callable=lambda obj: [e.value for e in obj]),
                                 nullable=False, default=DomainVerificationMethod.DNS)
    verification_token = Column(String(128), nullable=False)
    verification_record = Column(String(500), nullable=True)
    last_verified_at = Column(TIMESTAMP(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    settings = relationship("WhiteLabelSettings", back_populates="custom_domains")

    def __repr__(self):
        return f"<CustomDomain(id={self.id}, domain='{self.domain}', status='{self.status}')>"

class EmailTemplate(Base):
    __tablename__ = "email_templates"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("white_label_settings.tenant_id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    html_content = Column(Text, nullable=False)
    text_content = Column(Text, nullable=True)
    variables = Column(JSON, nullable=True) # Names of the placeholders the template expects
    type = Column(SAEnum(EmailTemplateType, name="email_template_type_enum", values_callable=lambda obj: [e.value for e in obj]),
                  nullable=False, index=True)
    is_default = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<EmailTemplate(id={self.id}, name='{self.name}', type='{self.type}')>"

class LandingPage(Base):
    __tablename__ = "landing_pages"

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(String(64), ForeignKey("white_label_settings.tenant_id", ondelete="CASCADE"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    content = Column(JSON, nullable=False) # Ordered list of page-builder blocks
    seo_title = Column(String(255), nullable=True)
    seo_description = Column(Text, nullable=True)
    seo_keywords = Column(Text, nullable=True)
    featured_image = Column(String(500), nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    is_homepage = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('tenant_id', 'slug', name='uq_tenant_landing_page_slug'),)

    def __repr__(self):
        return f"<LandingPage(id={self.id}, slug='{self.slug}', published={self.is_published})>"
