import logging
from typing import Any, Dict, Optional

import requests
from sqlalchemy.orm import Session

from backend.core.config import settings
from backend.core.exceptions import ResourceNotFoundError
from backend.crud import white_label_crud
from backend.models.enums import DomainVerificationMethod
from backend.models.white_label_model import CustomDomain, EmailTemplate, LandingPage
from backend.schemas.white_label_schema import CustomDomainCreate, EmailTemplateRenderResponse
from backend.services import email_service

logger = logging.getLogger(__name__)

DNS_OVER_HTTPS_URL = "https://dns.google/resolve"
TXT_RECORD_TYPE = 16

# --- Custom domains ---
def add_custom_domain(db: Session, tenant_id: str, domain_in: CustomDomainCreate) -> CustomDomain:
    if white_label_crud.get_settings(db, tenant_id) is None:
        raise ResourceNotFoundError(f"White-label settings for tenant {tenant_id} not found.")
    return white_label_crud.create_custom_domain(db, tenant_id, domain_in)

def _txt_values(answer: Dict[str, Any]) -> str:
    # TXT data arrives quoted and may be split into several quoted chunks
    return "".join(part.strip('"') for part in str(answer.get("data", "")).split('" "'))

def check_dns_record(domain: str, token: str) -> Optional[str]:
    """Returns None when `_verification.{domain}` carries the token, else the reason it does not."""
    params = {"name": f"_verification.{domain}", "type": "TXT"}
    response = requests.get(DNS_OVER_HTTPS_URL, params=params, timeout=settings.HTTP_TIMEOUT_SECONDS)
    response.raise_for_status()
    answers = [a for a in response.json().get("Answer") or [] if a.get("type") == TXT_RECORD_TYPE]
    if not answers:
        return f"No TXT record found at _verification.{domain}."
    if any(_txt_values(answer) == token for answer in answers):
        return None
    return f"TXT record at _verification.{domain} does not contain the verification token."

def check_file_record(domain: str, token: str) -> Optional[str]:
    """Returns None when the well-known file serves the token, else the reason it does not."""
    url = f"https://{domain}/.well-known/verification.txt"
    response = requests.get(url, timeout=settings.HTTP_TIMEOUT_SECONDS)
    if response.status_code != 200:
        return f"{url} returned HTTP {response.status_code}."
    if response.text.strip() != token:
        return f"{url} does not contain the verification token."
    return None

def verify_custom_domain(db: Session, domain: CustomDomain) -> CustomDomain:
    """
    Checks the DNS TXT record or well-known file for the domain's token. The outcome is stored on
    the domain; an unreachable host counts as a failed check, not an error.
    """
    logger.info(f"Verifying custom domain {domain.domain} via {domain.verification_method.value}.")
    try:
        if domain.verification_method == DomainVerificationMethod.DNS:
            problem = check_dns_record(domain.domain, domain.verification_token)
        else:
            problem = check_file_record(domain.domain, domain.verification_token)
    except requests.exceptions.RequestException as e:
        problem = f"Verification request failed: {e}"

    if problem:
        return white_label_crud.mark_domain_failed(db, domain, problem)
    return white_label_crud.mark_domain_verified(db, domain)

# --- Email templates ---
def render_email_template(template: EmailTemplate, variables: Dict[str, Any]) -> EmailTemplateRenderResponse:
    missing = [name for name in (template.variables or []) if name not in variables]
    if missing:
        logger.warning(f"Rendering email template {template.id} without variables: {missing}")
    return EmailTemplateRenderResponse(
        subject=email_service.render_template_string(template.subject, variables),
        html=email_service.render_template_string(template.html_content, variables),
        text=email_service.render_template_string(template.text_content, variables) if template.text_content else None,
    )

# --- Landing pages ---
def get_public_landing_page(db: Session, slug: str, tenant_id: Optional[str] = None) -> LandingPage:
    """Published page by slug; each fetch counts as a view."""
    page = white_label_crud.get_landing_page_by_slug(db, slug, tenant_id)
    if page is None or not page.is_published:
        raise ResourceNotFoundError(f"Landing page '{slug}' not found.")
    return white_label_crud.increment_landing_page_views(db, page)
