import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError, ExpiredSignatureError, jwt
from firebase_admin import auth
from firebase_admin.auth import InvalidIdTokenError, ExpiredIdTokenError, RevokedIdTokenError

from backend.core.config import settings
from backend.core.exceptions import AuthenticationError
from backend.core.firebase_config import get_firebase_app, is_firebase_configured
from backend.models.enums import UserRole
from backend.schemas.user_schema import TokenData

logger = logging.getLogger(__name__)

APP_TOKEN_PROVIDER = "app"
FIREBASE_TOKEN_PROVIDER = "firebase"

def _coerce_role(value: Optional[str]) -> UserRole:
    try:
        return UserRole(value) if value else UserRole.STUDENT
    except ValueError:
        logger.warning(f"Unknown role claim '{value}' in token, defaulting to student.")
        return UserRole.STUDENT

# --- App-issued tokens ---
def create_access_token(
    subject: str,
    email: Optional[str] = None,
    role: UserRole = UserRole.STUDENT,
    expires_delta: Optional[timedelta] = None,
) -> str:
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(subject),
        "email": email,
        "role": UserRole(role).value,
        "provider": APP_TOKEN_PROVIDER,
        "iat": datetime.now(timezone.utc),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

def decode_app_token(token: str) -> TokenData:
    """Raises JWTError when the token is not a valid app token."""
    payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    subject = payload.get("sub")
    if not subject:
        raise JWTError("Token has no subject.")
    return TokenData(
        subject=str(subject),
        email=payload.get("email"),
        role=_coerce_role(payload.get("role")),
        provider=APP_TOKEN_PROVIDER,
    )

# --- Legacy Firebase ID tokens ---
def verify_firebase_id_token(id_token: str) -> TokenData:
    """
    Verifies a Firebase ID token and maps its claims to TokenData.
    The role comes from the optional 'role' custom claim.

    Raises:
        AuthenticationError if the token is invalid, expired, revoked or missing claims.
    """
    try:
        # Ensure Firebase app is initialized before calling auth functions
        get_firebase_app()
        decoded_token = auth.verify_id_token(id_token)
    except ExpiredIdTokenError:
        raise AuthenticationError("Authentication token has expired. Please log in again.")
    except RevokedIdTokenError:
        raise AuthenticationError("Authentication token has been revoked. Please log in again.")
    except (InvalidIdTokenError, ValueError) as e:
        logger.warning(f"Firebase ID token verification failed: {e}")
        raise AuthenticationError("Invalid or expired authentication token.")

    firebase_uid = decoded_token.get("uid")
    email = decoded_token.get("email")
    if not firebase_uid or not email:
        logger.warning("Firebase ID token is missing 'uid' or 'email' claims.")
        raise AuthenticationError("Invalid authentication credentials: Missing essential token claims.")

    return TokenData(
        subject=firebase_uid,
        email=email,
        role=_coerce_role(decoded_token.get("role")),
        provider=FIREBASE_TOKEN_PROVIDER,
    )

def authenticate_token(token: Optional[str]) -> TokenData:
    """
    Single entry point for bearer token verification, used by the edge middleware
    and by the route dependencies.

    App JWTs are tried first; Firebase ID tokens are accepted only when
    GOOGLE_APPLICATION_CREDENTIALS is configured.
    """
    if not token:
        raise AuthenticationError("Not authenticated. Bearer token required.")

    try:
        return decode_app_token(token)
    except ExpiredSignatureError:
        raise AuthenticationError("Authentication token has expired. Please log in again.")
    except JWTError as e:
        app_error = e

    if is_firebase_configured():
        return verify_firebase_id_token(token)

    logger.debug(f"App token rejected and Firebase is not configured: {app_error}")
    raise AuthenticationError("Invalid authentication token.")

def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    scheme, param = get_authorization_scheme_param(authorization)
    if not authorization or scheme.lower() != "bearer" or not param:
        return None
    return param
