from pydantic import BaseModel, Field, EmailStr
from typing import Optional, List, Dict, Any
from datetime import datetime
from decimal import Decimal

from backend.models.enums import (
    DomainStatus, DomainVerificationMethod, EmailTemplateType, TimeFormat
)

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

# --- Typed configuration blocks stored as JSON on WhiteLabelSettings ---
class SocialLinks(BaseModel):
    facebook: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None
    instagram: Optional[str] = None
    youtube: Optional[str] = None

class ContactInfo(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = Field(None, max_length=500)
    support_hours: Optional[str] = Field(None, max_length=100)

class BillingAddress(BaseModel):
    line1: Optional[str] = Field(None, max_length=255)
    line2: Optional[str] = Field(None, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)
    country: str = Field("IN", max_length=2)

class PaymentMethodsConfig(BaseModel):
    razorpay: bool = True
    cashfree: bool = True

class FeatureFlags(BaseModel):
    live_classes: bool = True
    certificates: bool = True
    subscriptions: bool = True
    analytics: bool = True
    custom_domain: bool = False

class TenantLimits(BaseModel):
    max_courses: Optional[int] = Field(None, ge=0, description="None means unlimited")
    max_students: Optional[int] = Field(None, ge=0)
    max_instructors: Optional[int] = Field(None, ge=0)
    storage_gb: Optional[int] = Field(None, ge=0)

# --- WhiteLabelSettings Schemas ---
class WhiteLabelSettingsBase(BaseModel):
    organization_name: str = Field(..., min_length=2, max_length=255)
    domain: Optional[str] = Field(None, max_length=255)
    subdomain: Optional[str] = Field(None, max_length=100, pattern=r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")

    logo: Optional[str] = Field(None, max_length=500)
    logo_light: Optional[str] = Field(None, max_length=500)
    logo_dark: Optional[str] = Field(None, max_length=500)
    favicon: Optional[str] = Field(None, max_length=500)
    primary_color: str = Field("#3b82f6", pattern=HEX_COLOR_PATTERN)
    secondary_color: str = Field("#1e293b", pattern=HEX_COLOR_PATTERN)
    accent_color: str = Field("#06b6d4", pattern=HEX_COLOR_PATTERN)
    background_color: str = Field("#ffffff", pattern=HEX_COLOR_PATTERN)
    text_color: str = Field("#1f2937", pattern=HEX_COLOR_PATTERN)
    custom_css: Optional[str] = None
    custom_js: Optional[str] = None
    header_html: Optional[str] = None
    footer_html: Optional[str] = None

    seo_title: Optional[str] = Field(None, max_length=255)
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None

    social_links: SocialLinks = Field(default_factory=SocialLinks)
    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    billing_address: BillingAddress = Field(default_factory=BillingAddress)
    payment_methods: PaymentMethodsConfig = Field(default_factory=PaymentMethodsConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    limits: TenantLimits = Field(default_factory=TenantLimits)

    currency: str = Field("INR", max_length=10)
    timezone: str = Field("Asia/Kolkata", max_length=64)
    date_format: str = Field("DD/MM/YYYY", max_length=20)
    time_format: TimeFormat = TimeFormat.TWENTY_FOUR_HOUR
    language: str = Field("en", max_length=10)
    tax_rate: Decimal = Field(Decimal("0.00"), ge=0, le=100)
    tax_number: Optional[str] = Field(None, max_length=64)

class WhiteLabelSettingsUpsert(WhiteLabelSettingsBase):
    tenant_id: Optional[str] = Field(None, max_length=64, description="Generated when omitted")

class WhiteLabelSettingsDisplay(WhiteLabelSettingsBase):
    id: int
    tenant_id: str
    custom_domain_verified: bool
    ssl_enabled: bool
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# --- CustomDomain Schemas ---
class CustomDomainCreate(BaseModel):
    domain: str = Field(..., min_length=4, max_length=255, pattern=r"^[A-Za-z0-9][A-Za-z0-9.-]*\.[A-Za-z]{2,}$")
    subdomain: Optional[str] = Field(None, max_length=100)
    verification_method: DomainVerificationMethod = DomainVerificationMethod.DNS

class CustomDomainDisplay(BaseModel):
    id: int
    tenant_id: str
    domain: str
    subdomain: Optional[str] = None
    status: DomainStatus
    verification_method: DomainVerificationMethod
    verification_token: str
    verification_record: Optional[str] = None
    last_verified_at: Optional[datetime] = None
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

# --- EmailTemplate Schemas ---
class EmailTemplateBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    subject: str = Field(..., min_length=1, max_length=255)
    html_content: str = Field(..., min_length=1)
    text_content: Optional[str] = None
    variables: List[str] = Field(default_factory=list, description="Placeholders the template expects")
    type: EmailTemplateType
    is_default: bool = False

class EmailTemplateCreate(EmailTemplateBase):
    pass

class EmailTemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    html_content: Optional[str] = Field(None, min_length=1)
    text_content: Optional[str] = None
    variables: Optional[List[str]] = None
    is_default: Optional[bool] = None
    is_active: Optional[bool] = None

class EmailTemplateDisplay(EmailTemplateBase):
    id: int
    tenant_id: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class EmailTemplateRenderRequest(BaseModel):
    variables: Dict[str, Any] = Field(default_factory=dict)

class EmailTemplateRenderResponse(BaseModel):
    subject: str
    html: str
    text: Optional[str] = None

# --- LandingPage Schemas ---
class LandingPageBlock(BaseModel):
    type: str = Field(..., min_length=1, max_length=50, description="hero, features, testimonials, cta, ...")
    props: Dict[str, Any] = Field(default_factory=dict)

class LandingPageBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=255)
    slug: str = Field(..., min_length=1, max_length=255, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    content: List[LandingPageBlock] = Field(default_factory=list)
    seo_title: Optional[str] = Field(None, max_length=255)
    seo_description: Optional[str] = None
    seo_keywords: Optional[str] = None
    featured_image: Optional[str] = Field(None, max_length=500)
    is_homepage: bool = False

class LandingPageCreate(LandingPageBase):
    pass

class LandingPageDisplay(LandingPageBase):
    id: int
    tenant_id: Optional[str] = None
    is_published: bool
    view_count: int
    created_at: datetime

    class Config:
        from_attributes = True
