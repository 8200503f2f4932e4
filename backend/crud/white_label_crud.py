from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List, Optional
from datetime import datetime, timezone
import logging
import secrets

from backend.core.database import commit_or_rollback
from backend.models.white_label_model import (
    WhiteLabelSettings, CustomDomain, EmailTemplate, LandingPage, generate_tenant_id
)
from backend.models.enums import DomainStatus, DomainVerificationMethod, EmailTemplateType
from backend.schemas import white_label_schema as schemas

logger = logging.getLogger(__name__)

# Stored as JSON; everything else maps 1:1 onto columns
TYPED_JSON_FIELDS = {"social_links", "contact_info", "billing_address", "payment_methods", "features", "limits"}

def _settings_values(settings_in: schemas.WhiteLabelSettingsBase) -> dict:
    values = settings_in.model_dump(exclude=TYPED_JSON_FIELDS | {"tenant_id"})
    for field in TYPED_JSON_FIELDS:
        values[field] = getattr(settings_in, field).model_dump(mode="json")
    return values

# --- Settings ---
def get_settings(db: Session, tenant_id: str) -> Optional[WhiteLabelSettings]:
    return db.query(WhiteLabelSettings).filter(WhiteLabelSettings.tenant_id == tenant_id).first()

def get_settings_by_domain(db: Session, domain: str) -> Optional[WhiteLabelSettings]:
    return db.query(WhiteLabelSettings).filter(WhiteLabelSettings.domain == domain).first()

def upsert_settings(db: Session, settings_in: schemas.WhiteLabelSettingsUpsert) -> WhiteLabelSettings:
    """Creates the tenant's settings, or replaces every field of the existing row."""
    tenant_id = settings_in.tenant_id or generate_tenant_id()
    db_settings = get_settings(db, tenant_id)
    values = _settings_values(settings_in)
    if db_settings is None:
        db_settings = WhiteLabelSettings(tenant_id=tenant_id, **values)
        db.add(db_settings)
        action = "created"
    else:
        for field, value in values.items():
            setattr(db_settings, field, value)
        action = "updated"
    try:
        commit_or_rollback(db, db_settings)
    except IntegrityError:
        raise ValueError("Domain or subdomain is already used by another tenant.")
    logger.info(f"White-label settings {action} for tenant {tenant_id} ({db_settings.organization_name}).")
    return db_settings

def set_custom_domain_verified(db: Session, tenant_id: str, verified: bool = True) -> None:
    db_settings = get_settings(db, tenant_id)
    if db_settings is not None:
        db_settings.custom_domain_verified = verified
        commit_or_rollback(db, db_settings)

# --- Custom domains ---
def build_verification_record(domain: str, method: DomainVerificationMethod, token: str) -> str:
    if method == DomainVerificationMethod.DNS:
        return f"TXT _verification.{domain} {token}"
    return f"{domain}/.well-known/verification.txt"

def create_custom_domain(db: Session, tenant_id: str, domain_in: schemas.CustomDomainCreate) -> CustomDomain:
    domain = domain_in.domain.lower()
    token = secrets.token_hex(32)
    db_domain = CustomDomain(
        tenant_id=tenant_id,
        domain=domain,
        subdomain=domain_in.subdomain,
        status=DomainStatus.PENDING,
        verification_method=domain_in.verification_method,
        verification_token=token,
        verification_record=build_verification_record(domain, domain_in.verification_method, token),
    )
    db.add(db_domain)
    try:
        commit_or_rollback(db, db_domain)
    except IntegrityError:
        raise ValueError(f"Domain '{domain}' is already registered.")
    logger.info(f"Custom domain {domain} added for tenant {tenant_id} ({domain_in.verification_method.value} verification).")
    return db_domain

def get_custom_domain(db: Session, domain_id: int) -> Optional[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.id == domain_id).first()

def get_custom_domains(db: Session, tenant_id: str) -> List[CustomDomain]:
    return db.query(CustomDomain).filter(CustomDomain.tenant_id == tenant_id).order_by(CustomDomain.id.desc()).all()

def mark_domain_verified(db: Session, db_domain: CustomDomain) -> CustomDomain:
    db_domain.status = DomainStatus.VERIFIED
    db_domain.last_verified_at = datetime.now(timezone.utc)
    db_domain.error_message = None
    if db_domain.settings is not None:
        db_domain.settings.custom_domain_verified = True
    commit_or_rollback(db, db_domain)
    logger.info(f"Custom domain {db_domain.domain} verified for tenant {db_domain.tenant_id}.")
    return db_domain

def mark_domain_failed(db: Session, db_domain: CustomDomain, error_message: str) -> CustomDomain:
    db_domain.status = DomainStatus.FAILED
    db_domain.error_message = error_message
    commit_or_rollback(db, db_domain)
    logger.warning(f"Custom domain {db_domain.domain} verification failed: {error_message}")
    return db_domain

def delete_custom_domain(db: Session, db_domain: CustomDomain) -> None:
    domain = db_domain.domain
    db.delete(db_domain)
    commit_or_rollback(db)
    logger.info(f"Custom domain {domain} deleted.")

# --- Email templates ---
def create_email_template(db: Session, tenant_id: Optional[str], template_in: schemas.EmailTemplateCreate) -> EmailTemplate:
    db_template = EmailTemplate(**template_in.model_dump(), tenant_id=tenant_id, is_active=True)
    db.add(db_template)
    commit_or_rollback(db, db_template)
    logger.info(f"Email template '{db_template.name}' ({db_template.type.value}) created for tenant {tenant_id or 'platform'}.")
    return db_template

def get_email_template(db: Session, template_id: int) -> Optional[EmailTemplate]:
    return db.query(EmailTemplate).filter(EmailTemplate.id == template_id).first()

def get_email_templates(db: Session, tenant_id: Optional[str] = None, template_type: Optional[EmailTemplateType] = None) -> List[EmailTemplate]:
    query = db.query(EmailTemplate)
    if tenant_id is not None:
        query = query.filter(EmailTemplate.tenant_id == tenant_id)
    if template_type is not None:
        query = query.filter(EmailTemplate.type == template_type)
    return query.order_by(EmailTemplate.type, EmailTemplate.name).all()

def update_email_template(db: Session, db_template: EmailTemplate, template_in: schemas.EmailTemplateUpdate) -> EmailTemplate:
    for field, value in template_in.model_dump(exclude_unset=True).items():
        setattr(db_template, field, value)
    commit_or_rollback(db, db_template)
    logger.info(f"Email template {db_template.id} updated.")
    return db_template

def delete_email_template(db: Session, db_template: EmailTemplate) -> None:
    template_id = db_template.id
    db.delete(db_template)
    commit_or_rollback(db)
    logger.info(f"Email template {template_id} deleted.")

# --- Landing pages ---
def _unset_other_homepages(db: Session, tenant_id: Optional[str], keep_id: Optional[int] = None) -> None:
    query = db.query(LandingPage).filter(LandingPage.tenant_id == tenant_id, LandingPage.is_homepage == True)
    if keep_id is not None:
        query = query.filter(LandingPage.id != keep_id)
    query.update({LandingPage.is_homepage: False}, synchronize_session="fetch")

def create_landing_page(db: Session, tenant_id: Optional[str], page_in: schemas.LandingPageCreate) -> LandingPage:
    if page_in.is_homepage:
        _unset_other_homepages(db, tenant_id)
    db_page = LandingPage(
        **page_in.model_dump(exclude={"content"}),
        content=[block.model_dump(mode="json") for block in page_in.content],
        tenant_id=tenant_id,
        is_published=False,
        view_count=0,
    )
    db.add(db_page)
    try:
        commit_or_rollback(db, db_page)
    except IntegrityError:
        raise ValueError(f"A landing page with slug '{page_in.slug}' already exists.")
    logger.info(f"Landing page '{db_page.slug}' (ID: {db_page.id}) created for tenant {tenant_id or 'platform'}.")
    return db_page

def update_landing_page(db: Session, db_page: LandingPage, page_in: schemas.LandingPageCreate) -> LandingPage:
    if page_in.is_homepage:
        _unset_other_homepages(db, db_page.tenant_id, keep_id=db_page.id)
    for field, value in page_in.model_dump(exclude={"content"}).items():
        setattr(db_page, field, value)
    db_page.content = [block.model_dump(mode="json") for block in page_in.content]
    try:
        commit_or_rollback(db, db_page)
    except IntegrityError:
        raise ValueError(f"A landing page with slug '{page_in.slug}' already exists.")
    logger.info(f"Landing page {db_page.id} updated.")
    return db_page

def get_landing_page(db: Session, page_id: int) -> Optional[LandingPage]:
    return db.query(LandingPage).filter(LandingPage.id == page_id).first()

def get_landing_page_by_slug(db: Session, slug: str, tenant_id: Optional[str] = None) -> Optional[LandingPage]:
    return db.query(LandingPage).filter(LandingPage.slug == slug, LandingPage.tenant_id == tenant_id).first()

def get_landing_pages(db: Session, tenant_id: Optional[str] = None) -> List[LandingPage]:
    query = db.query(LandingPage)
    if tenant_id is not None:
        query = query.filter(LandingPage.tenant_id == tenant_id)
    return query.order_by(LandingPage.id.desc()).all()

def publish_landing_page(db: Session, db_page: LandingPage, published: bool = True) -> LandingPage:
    db_page.is_published = published
    commit_or_rollback(db, db_page)
    logger.info(f"Landing page {db_page.id} {'published' if published else 'unpublished'}.")
    return db_page

def increment_landing_page_views(db: Session, db_page: LandingPage) -> LandingPage:
    db_page.view_count = (db_page.view_count or 0) + 1
    commit_or_rollback(db, db_page)
    return db_page

def delete_landing_page(db: Session, db_page: LandingPage) -> None:
    page_id = db_page.id
    db.delete(db_page)
    commit_or_rollback(db)
    logger.info(f"Landing page {page_id} deleted.")
