from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_current_admin_user
from backend.crud import white_label_crud as crud
from backend.models.enums import EmailTemplateType, UserRole
from backend.models.user_model import User
from backend.models.white_label_model import CustomDomain, EmailTemplate, LandingPage
from backend.schemas import white_label_schema as schemas
from backend.services import white_label_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/white-label", tags=["White Label"])

def _not_found(what: str, identifier) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{what} {identifier} not found.")

def _domain_or_404(db: Session, domain_id: int) -> CustomDomain:
    domain = crud.get_custom_domain(db, domain_id)
    if domain is None:
        raise _not_found("Custom domain", domain_id)
    return domain

def _email_template_or_404(db: Session, template_id: int) -> EmailTemplate:
    template = crud.get_email_template(db, template_id)
    if template is None:
        raise _not_found("Email template", template_id)
    return template

def _landing_page_or_404(db: Session, page_id: int) -> LandingPage:
    page = crud.get_landing_page(db, page_id)
    if page is None:
        raise _not_found("Landing page", page_id)
    return page

# --- Settings ---
@router.put("/settings", response_model=schemas.WhiteLabelSettingsDisplay)
def upsert_white_label_settings(
    settings_in: schemas.WhiteLabelSettingsUpsert,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """
    Admin: create a tenant's branding settings, or replace them when the tenant
    already exists. A tenant id is generated when none is given.
    """
    logger.info(f"Admin {current_admin.email} saving white-label settings for tenant {settings_in.tenant_id or '(new)'}")
    return crud.upsert_settings(db, settings_in)

@router.get("/settings/{tenant_id}", response_model=schemas.WhiteLabelSettingsDisplay)
def read_white_label_settings(
    tenant_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Settings of a tenant. Members of the tenant and admins may read them."""
    if current_user.role != UserRole.ADMIN and current_user.tenant_id != tenant_id:
        raise _not_found("White-label settings for tenant", tenant_id)
    db_settings = crud.get_settings(db, tenant_id)
    if db_settings is None:
        raise _not_found("White-label settings for tenant", tenant_id)
    return db_settings

# --- Custom domains ---
@router.post("/settings/{tenant_id}/domains", response_model=schemas.CustomDomainDisplay, status_code=status.HTTP_201_CREATED)
def add_custom_domain(
    tenant_id: str,
    domain_in: schemas.CustomDomainCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: register a domain for the tenant. The response carries the record to publish for verification."""
    return white_label_service.add_custom_domain(db, tenant_id, domain_in)

@router.get("/settings/{tenant_id}/domains", response_model=List[schemas.CustomDomainDisplay])
def read_custom_domains(
    tenant_id: str,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.get_custom_domains(db, tenant_id)

@router.post("/domains/{domain_id}/verify", response_model=schemas.CustomDomainDisplay)
def verify_custom_domain(
    domain_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: check the DNS TXT record or well-known file now. The result is stored on the domain."""
    return white_label_service.verify_custom_domain(db, _domain_or_404(db, domain_id))

@router.delete("/domains/{domain_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_custom_domain(
    domain_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    crud.delete_custom_domain(db, _domain_or_404(db, domain_id))

# --- Email templates ---
@router.post("/email-templates", response_model=schemas.EmailTemplateDisplay, status_code=status.HTTP_201_CREATED)
def create_email_template(
    template_in: schemas.EmailTemplateCreate,
    tenant_id: Optional[str] = Query(None, description="Omit for a platform-wide template"),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.create_email_template(db, tenant_id, template_in)

@router.get("/email-templates", response_model=List[schemas.EmailTemplateDisplay])
def read_email_templates(
    tenant_id: Optional[str] = Query(None),
    template_type: Optional[EmailTemplateType] = Query(None, alias="type"),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.get_email_templates(db, tenant_id=tenant_id, template_type=template_type)

@router.put("/email-templates/{template_id}", response_model=schemas.EmailTemplateDisplay)
def update_email_template(
    template_id: int,
    template_in: schemas.EmailTemplateUpdate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.update_email_template(db, _email_template_or_404(db, template_id), template_in)

@router.delete("/email-templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_email_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    crud.delete_email_template(db, _email_template_or_404(db, template_id))

@router.post("/email-templates/{template_id}/render", response_model=schemas.EmailTemplateRenderResponse)
def render_email_template(
    template_id: int,
    render_in: schemas.EmailTemplateRenderRequest,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: preview a template with sample variables."""
    return white_label_service.render_email_template(_email_template_or_404(db, template_id), render_in.variables)

# --- Landing pages ---
@router.get("/landing-pages/public/{slug}", response_model=schemas.LandingPageDisplay)
def read_public_landing_page(
    slug: str,
    tenant_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    """Published page by slug. Each fetch counts as a view."""
    return white_label_service.get_public_landing_page(db, slug, tenant_id)

@router.post("/landing-pages", response_model=schemas.LandingPageDisplay, status_code=status.HTTP_201_CREATED)
def create_landing_page(
    page_in: schemas.LandingPageCreate,
    tenant_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.create_landing_page(db, tenant_id, page_in)

@router.get("/landing-pages", response_model=List[schemas.LandingPageDisplay])
def read_landing_pages(
    tenant_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.get_landing_pages(db, tenant_id)

@router.put("/landing-pages/{page_id}", response_model=schemas.LandingPageDisplay)
def update_landing_page(
    page_id: int,
    page_in: schemas.LandingPageCreate,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.update_landing_page(db, _landing_page_or_404(db, page_id), page_in)

@router.post("/landing-pages/{page_id}/publish", response_model=schemas.LandingPageDisplay)
def publish_landing_page(
    page_id: int,
    published: bool = Query(True),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return crud.publish_landing_page(db, _landing_page_or_404(db, page_id), published)

@router.delete("/landing-pages/{page_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_landing_page(
    page_id: int,
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    crud.delete_landing_page(db, _landing_page_or_404(db, page_id))
