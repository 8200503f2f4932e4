import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

from fastapi import Request, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from backend.core.config import settings
from backend.core.database import get_db
from backend.core.dependencies import resolve_user
from backend.core.exceptions import AuthenticationError
from backend.core.rate_limit import current_window, get_counter_store, rate_limit_key
from backend.core.security import authenticate_token, extract_bearer_token
from backend.models.enums import UserRole
from backend.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

# --- Route tables ---
PROTECTED_PREFIXES = (
    "/dashboard",
    "/admin",
    "/api/courses",
    "/api/payments",
    "/api/certificates",
    "/api/analytics",
    "/api/white-label",
    "/api/live-classes",
    "/api/subscriptions",
    "/api/notifications",
)

ADMIN_PREFIXES = ("/admin", "/api/admin", "/dashboard/admin")

PUBLIC_PATHS = {
    "/",
    "/auth/signin",
    "/auth/signup",
    "/api/health",
    "/api/docs",
    "/api/openapi.json",
    "/sitemap.xml",
    "/robots.txt",
}

PUBLIC_PREFIXES = ("/api/auth/", "/api/webhooks/")

WEBHOOK_PREFIX = "/api/webhooks/"
WEBHOOK_SIGNATURE_HEADERS = ("x-razorpay-signature", "x-verify", "x-webhook-signature")

# Paths that carry money or signed documents get transport and content-type checks
SENSITIVE_PREFIXES = ("/api/payments", "/api/certificates")
ACCEPTED_CONTENT_TYPES = ("application/json", "multipart/form-data")

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-eval' 'unsafe-inline' https://www.googletagmanager.com https://www.google-analytics.com; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "img-src 'self' blob: data: https://*.unsplash.com https://*.cloudinary.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "object-src 'none'; "
    "base-uri 'self'; "
    "form-action 'self'; "
    "frame-ancestors 'none'; "
    "upgrade-insecure-requests;"
)

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "origin-when-cross-origin",
    "X-DNS-Prefetch-Control": "on",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
    "Content-Security-Policy": CONTENT_SECURITY_POLICY,
}

def _matches(path: str, prefixes) -> bool:
    return any(path == p or path.startswith(p.rstrip("/") + "/") for p in prefixes)

def is_public_path(path: str, method: str) -> bool:
    if path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES):
        return True
    # Anyone holding a verification code may check a certificate
    return method == "GET" and path.startswith("/api/certificates/verify/")

def is_api_path(path: str) -> bool:
    return path.startswith("/api/")

def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"

def apply_security_headers(response: Response) -> Response:
    for header, value in SECURITY_HEADERS.items():
        response.headers[header] = value
    return response

def _set_request_header(request: Request, name: str, value: str) -> None:
    key = name.lower().encode("latin-1")
    headers = [(k, v) for k, v in request.scope["headers"] if k != key]
    headers.append((key, value.encode("latin-1")))
    request.scope["headers"] = headers

def _signin_redirect(path: str, admin: bool) -> RedirectResponse:
    target = "/auth/admin" if admin else "/auth/signin"
    return RedirectResponse(
        url=f"{target}?{urlencode({'callbackUrl': path})}",
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    )

# --- Rate limiting ---
async def check_rate_limit(request: Request) -> tuple:
    """Returns (allowed, limit headers). Counts every /api/* request against the client IP's current window."""
    limit = settings.RATE_LIMIT_REQUESTS
    window_seconds = settings.RATE_LIMIT_WINDOW_SECONDS
    ip = get_client_ip(request)
    count = await get_counter_store().incr(rate_limit_key(ip, current_window(window_seconds=window_seconds)), window_seconds)

    if count > limit:
        reset_at = datetime.now(timezone.utc) + timedelta(seconds=window_seconds)
        logger.warning(f"Rate limit exceeded for {ip} on {request.url.path} ({count}/{limit}).")
        return False, {
            "Retry-After": str(window_seconds),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": reset_at.isoformat().replace("+00:00", "Z"),
        }
    return True, {
        "X-RateLimit-Limit": str(limit),
        "X-RateLimit-Remaining": str(limit - count),
    }

# --- Sensitive path checks ---
def check_sensitive_request(request: Request) -> Optional[Response]:
    if not _matches(request.url.path, SENSITIVE_PREFIXES):
        return None
    if settings.IS_PRODUCTION and request.headers.get("x-forwarded-proto") != "https":
        logger.warning(f"Rejected plain HTTP request to {request.url.path} in production.")
        return PlainTextResponse("HTTPS Required", status_code=status.HTTP_400_BAD_REQUEST)
    if request.method in ("POST", "PUT", "PATCH"):
        content_type = request.headers.get("content-type") or ""
        if not any(accepted in content_type for accepted in ACCEPTED_CONTENT_TYPES):
            logger.warning(f"Rejected {request.method} {request.url.path} with content type '{content_type}'.")
            return PlainTextResponse("Invalid Content Type", status_code=status.HTTP_400_BAD_REQUEST)
    return None

# --- Auth gate ---
def _stored_role(request: Request, token_data: TokenData) -> Optional[UserRole]:
    """Role on the caller's user row, or None when the identity has no account yet."""
    # Same session provider the routes get, so dependency overrides apply here too
    session_provider = request.app.dependency_overrides.get(get_db, get_db)
    sessions = session_provider()
    db = next(sessions)
    try:
        user = resolve_user(db, token_data)
        return user.role if user else None
    finally:
        sessions.close()

def check_authentication(request: Request) -> Optional[Response]:
    """
    Gates protected and admin prefixes. On success the verified identity is stored on
    request.state.current_user and, for API paths, forwarded as X-User-* request headers.
    """
    path = request.url.path
    is_admin_path = _matches(path, ADMIN_PREFIXES)
    if not (is_admin_path or _matches(path, PROTECTED_PREFIXES)):
        return None

    api = is_api_path(path)
    token = extract_bearer_token(request.headers.get("authorization"))
    try:
        token_data = authenticate_token(token)
    except AuthenticationError as e:
        logger.info(f"Unauthenticated request to {path}: {e.message}")
        if api:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": e.message},
                headers={"WWW-Authenticate": "Bearer"},
            )
        return _signin_redirect(path, admin=is_admin_path)

    if is_admin_path:
        # The account's role outranks the token's role claim
        stored_role = _stored_role(request, token_data)
        if stored_role is not None and stored_role != token_data.role:
            logger.info(f"Role for subject {token_data.subject} resolved from account: {stored_role.value}.")
            token_data = token_data.model_copy(update={"role": stored_role})

    if is_admin_path and token_data.role != UserRole.ADMIN:
        logger.warning(f"Non-admin subject {token_data.subject} denied on {path}.")
        if api:
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"detail": "Operation not permitted: Requires admin privileges."},
            )
        return RedirectResponse(url="/auth/admin", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

    request.state.current_user = token_data
    if api:
        _set_request_header(request, "X-User-ID", token_data.subject)
        _set_request_header(request, "X-User-Role", token_data.role.value if token_data.role else UserRole.STUDENT.value)
        _set_request_header(request, "X-User-Email", token_data.email or "")
    return None

async def edge_middleware(request: Request, call_next):
    """Security headers, /api rate limit, webhook signature presence, auth gate and sensitive path checks."""
    path = request.url.path
    limit_headers = {}

    if is_api_path(path):
        allowed, limit_headers = await check_rate_limit(request)
        if not allowed:
            return apply_security_headers(
                PlainTextResponse("Too Many Requests", status_code=status.HTTP_429_TOO_MANY_REQUESTS, headers=limit_headers)
            )

    if path.startswith(WEBHOOK_PREFIX) and not any(request.headers.get(h) for h in WEBHOOK_SIGNATURE_HEADERS):
        logger.warning(f"Webhook call to {path} without a signature header.")
        early = PlainTextResponse("Missing Signature", status_code=status.HTTP_400_BAD_REQUEST)
    elif is_public_path(path, request.method):
        early = None
    else:
        early = check_authentication(request) or check_sensitive_request(request)

    response = early if early is not None else await call_next(request)
    for header, value in limit_headers.items():
        response.headers[header] = value
    return apply_security_headers(response)
