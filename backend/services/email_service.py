import logging
import emails # Library for composing and sending emails
from emails.template import JinjaTemplate # For HTML templating
from sqlalchemy.orm import Session
from typing import Dict, Any, Optional, Tuple
import os # For path joining

from backend.core.config import settings # For email server configuration
from backend.models.enums import EmailTemplateType
from backend.models.white_label_model import EmailTemplate

logger = logging.getLogger(__name__)

# --- Email Sending Logic ---

def send_email(to_email: str, subject: str, html_content: str, text_content: Optional[str] = None) -> bool:
    """
    Sends an email using configured SMTP settings.
    Logs the message instead when SMTP is not configured.
    """
    if not settings.EMAIL_HOST or not settings.EMAIL_FROM_ADDRESS:
        logger.warning("Email sending SKIPPED: EMAIL_HOST or EMAIL_FROM_ADDRESS not configured.")
        logger.info(f"Email SKIPPED [To: {to_email}, Subject: {subject}]")
        logger.debug(f"Body:\n{html_content[:500]}...") # Log preview of body
        return True

    message = emails.Message(
        subject=subject,
        html=html_content,
        text=text_content,
        mail_from=(settings.EMAIL_FROM_NAME, settings.EMAIL_FROM_ADDRESS)
    )

    smtp_options = {
        "host": settings.EMAIL_HOST,
        "port": settings.EMAIL_PORT,
        "tls": settings.EMAIL_USE_TLS,
        "ssl": settings.EMAIL_USE_SSL, # Note: usually only one of TLS/SSL is true
        "user": settings.EMAIL_USERNAME,
        "password": settings.EMAIL_PASSWORD
    }
    # Remove None values from smtp_options as `emails` library might not like them
    smtp_options = {k: v for k, v in smtp_options.items() if v is not None}
    if not smtp_options.get("user"): # If no username, don't pass empty string for user/password
        smtp_options.pop("user", None)
        smtp_options.pop("password", None)

    logger.info(f"Attempting to send email to {to_email} via {settings.EMAIL_HOST}:{settings.EMAIL_PORT}")
    try:
        response = message.send(to=to_email, smtp=smtp_options)
        if response and response.status_code in [250, 252]: # Typical SMTP success codes
            logger.info(f"Email sent successfully to {to_email}. Subject: '{subject}'. SMTP Response: {response.status_code}")
            return True
        logger.error(f"Failed to send email to {to_email}. SMTP Response: {response.status_code if response else 'No response'}. Error: {response.error if response else 'N/A'}")
        return False
    except Exception as e:
        logger.error(f"Exception during email sending to {to_email}: {e}", exc_info=True)
        return False

def render_template_string(template_str: str, context: Dict[str, Any]) -> str:
    """Renders a Jinja template held in a string (tenant templates stored in the database)."""
    return JinjaTemplate(template_str).render(**context)

def render_email_template(template_name: str, context: Dict[str, Any]) -> Optional[str]:
    """
    Renders a file template from EMAILS_TEMPLATES_DIR.
    Returns None when the template is missing or fails to render.
    """
    template_file_path = os.path.join(settings.EMAILS_TEMPLATES_DIR, template_name)

    try:
        with open(template_file_path, "r", encoding="utf-8") as f:
            template_str = f.read()
        return render_template_string(template_str, context)
    except FileNotFoundError:
        logger.error(f"Email template not found: {template_file_path}")
        return None
    except Exception as e:
        logger.error(f"Error rendering email template '{template_name}': {e}", exc_info=True)
        return None

def _find_tenant_template(db: Session, tenant_id: Optional[str], template_type: EmailTemplateType) -> Optional[EmailTemplate]:
    query = db.query(EmailTemplate).filter(
        EmailTemplate.type == template_type,
        EmailTemplate.is_active == True,
        EmailTemplate.tenant_id == tenant_id,
    )
    return query.order_by(EmailTemplate.is_default.desc(), EmailTemplate.id.desc()).first()

def render_tenant_template(
    db: Session, tenant_id: Optional[str], template_type: EmailTemplateType, context: Dict[str, Any]
) -> Optional[Tuple[str, str, Optional[str]]]:
    """Returns (subject, html, text) from the tenant's active template of this type, if one exists."""
    template = _find_tenant_template(db, tenant_id, template_type)
    if not template:
        return None
    subject = render_template_string(template.subject, context)
    html = render_template_string(template.html_content, context)
    text = render_template_string(template.text_content, context) if template.text_content else None
    return subject, html, text


def send_templated_email(
    to_email: str,
    subject: str,
    html_template_name: str,
    context: Dict[str, Any],
    template_type: Optional[EmailTemplateType] = None,
    tenant_id: Optional[str] = None,
    db: Optional[Session] = None,
) -> bool:
    """
    Renders an HTML email and sends it.
    A tenant's own template of `template_type` takes precedence over the bundled file template.
    """
    logger.info(f"Preparing templated email. To: {to_email}, Subject: '{subject}', Template: {html_template_name}")

    # Add common context variables useful for all templates
    context.setdefault("APP_NAME", settings.PROJECT_NAME)
    context.setdefault("APP_URL", settings.APP_URL)

    text_content = None
    tenant_rendered = None
    if db is not None and template_type is not None:
        tenant_rendered = render_tenant_template(db, tenant_id, template_type, context)

    if tenant_rendered:
        subject, html_content, text_content = tenant_rendered
    else:
        html_content = render_email_template(template_name=html_template_name, context=context)
        if html_content is None:
            logger.error(f"Aborting email to {to_email} due to template rendering error for '{html_template_name}'.")
            return False

    return send_email(to_email=to_email, subject=subject, html_content=html_content, text_content=text_content)
