from fastapi import APIRouter, Depends, HTTPException, status, Body
from sqlalchemy.orm import Session
import logging

from backend.core.config import settings
from backend.core.database import get_db
from backend.core.dependencies import get_current_active_user, get_token_data
from backend.core.security import FIREBASE_TOKEN_PROVIDER, create_access_token
from backend.crud.user_crud import (
    create_user,
    get_user_by_firebase_uid,
    get_user_by_email,
    update_user,
)
from backend.models.user_model import User
from backend.schemas.user_schema import (
    UserRegisterRequest,
    UserDisplay,
    UserUpdate,
    AuthResponse,
    UserCreateInternal,
    TokenData,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    payload: UserRegisterRequest = Body(...),
    token_data: TokenData = Depends(get_token_data),
    db: Session = Depends(get_db)
):
    """
    Provision a local account for a verified Firebase identity.

    The client signs in with Firebase, then calls this endpoint with the ID token
    as a bearer token. App-issued tokens always belong to an existing account.
    """
    if token_data.provider != FIREBASE_TOKEN_PROVIDER:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User is already registered.")
    if not token_data.email:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email not available from the identity provider.",
        )

    if get_user_by_firebase_uid(db, firebase_uid=token_data.subject):
        logger.warning(f"Registration failed: Firebase UID {token_data.subject} already registered.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this Firebase UID already exists.")
    if get_user_by_email(db, email=token_data.email):
        logger.warning(f"Registration failed: email {token_data.email} already registered.")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User with this email already exists.")

    user_in = UserCreateInternal(
        email=token_data.email,
        name=payload.name,
        avatar=payload.avatar,
        firebase_uid=token_data.subject,
    )
    new_user = create_user(db=db, user_data=user_in)
    logger.info(f"User {new_user.email} (ID: {new_user.id}) registered.")
    return AuthResponse(message="User registered successfully.", user=UserDisplay.model_validate(new_user))

@router.post("/token", response_model=TokenResponse)
def issue_development_token(payload: TokenRequest, db: Session = Depends(get_db)):
    """
    Development only: exchange an email for an app access token without a password.
    Disabled in production.
    """
    if settings.IS_PRODUCTION:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    user = get_user_by_email(db, email=payload.email)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive.")

    token = create_access_token(subject=user.id, email=user.email, role=user.role)
    logger.info(f"Issued development token for user {user.email}.")
    return TokenResponse(access_token=token, expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60)

@router.get("/me", response_model=UserDisplay)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    """Get the profile of the currently authenticated user."""
    return current_user

@router.put("/me", response_model=UserDisplay)
def update_users_me(
    data_in: UserUpdate,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db)
):
    logger.info(f"User {current_user.email} updating profile.")
    return update_user(db, current_user, data_in)
