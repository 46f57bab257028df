"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class AuthMethod(str, Enum):
    """How an account was originally created."""

    PASSWORD = "password"
    GOOGLE = "google"
    OTP = "otp"


class UserProfile(BaseModel):
    """The user fields that are safe to return to clients."""

    id: UUID
    email: str
    name: str
    avatar: str | None = None
    created_at: datetime
    updated_at: datetime


class User(BaseModel):
    """A registered user of the system."""

    id: UUID
    email: str
    name: str
    password_hash: str | None = None
    avatar: str | None = None
    auth_method: AuthMethod
    google_id: str | None = None
    is_email_verified: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    def profile(self) -> UserProfile:
        """Client-facing view; never includes the password hash."""
        return UserProfile(
            id=self.id,
            email=self.email,
            name=self.name,
            avatar=self.avatar,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )


class Session(BaseModel):
    """A signed session token and the claims it carries."""

    token: str = Field(..., description="Signed bearer token (JWT)")
    user_id: UUID
    issued_at: datetime
    expires_at: datetime


class OTPEntry(BaseModel):
    """A one-time code awaiting verification."""

    id: UUID
    email: str
    code: str = Field(..., pattern=r"^\d{6}$")
    expires_at: datetime
    attempts: int = Field(0, ge=0)
    used: bool  # Required - fail closed, no default
    created_at: datetime

    model_config = {"from_attributes": True}

    def is_expired(self, now: datetime) -> bool:
        """Codes are valid strictly before expires_at."""
        return now >= self.expires_at


class GoogleIdentity(BaseModel):
    """Identity asserted by a verified Google ID token."""

    google_id: str
    email: str
    name: str = ""
    avatar: str | None = None
    email_verified: bool = False


class AuthenticatedUser(BaseModel):
    """User info returned after successful authentication."""

    user: User
    session: Session


# Request payloads


class SignupRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class OTPRequest(BaseModel):
    email: EmailStr


class VerifyOTPRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=1, max_length=12)


class GoogleAuthRequest(BaseModel):
    token: str = Field(..., min_length=1)
