from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from backend.models.enums import UserRole

class UserBase(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    avatar: Optional[str] = Field(None, max_length=500)

# Used by the auth layer when a verified identity has no local account yet
class UserCreateInternal(UserBase):
    firebase_uid: Optional[str] = None
    role: UserRole = UserRole.STUDENT
    tenant_id: Optional[str] = None

class UserDisplay(UserBase):
    id: int
    role: UserRole
    is_active: bool
    tenant_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Identity extracted from a bearer token, whichever provider issued it.
class TokenData(BaseModel):
    subject: str = Field(..., description="Local user id for app tokens, Firebase uid for legacy tokens")
    email: Optional[EmailStr] = None
    role: UserRole = UserRole.STUDENT
    provider: str = Field("app", description="'app' or 'firebase'")

class UserRegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    avatar: Optional[str] = Field(None, max_length=500)

class TokenRequest(BaseModel):
    email: EmailStr

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Lifetime of the token in seconds")

class AuthResponse(BaseModel):
    message: str
    user: Optional[UserDisplay] = None

class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    avatar: Optional[str] = Field(None, max_length=500)

# --- Admin Specific Schemas ---
class AdminUserUpdate(BaseModel):
    """Schema for data an Admin can update on a user."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    role: Optional[UserRole] = Field(None, description="New role for the user")
    is_active: Optional[bool] = None
    tenant_id: Optional[str] = None
