"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, EmailStr, Field

# bcrypt only looks at the first 72 bytes of a password
BCRYPT_MAX_BYTES = 72


def _normalize_email(value: str) -> str:
    return value.strip().lower()


def _within_bcrypt_limit(value: str) -> str:
    if len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes")
    return value


NormalizedEmail = Annotated[EmailStr, AfterValidator(_normalize_email)]
Password = Annotated[str, Field(min_length=1), AfterValidator(_within_bcrypt_limit)]


class Role(str, Enum):
    """Access level carried in the user record and session claims."""

    USER = "user"
    ADMIN = "admin"


class StrengthTier(str, Enum):
    """Qualitative password strength, derived from the score."""

    VERY_WEAK = "very-weak"
    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"
    VERY_STRONG = "very-strong"


class PasswordStrength(BaseModel):
    """Result of a password strength evaluation. Never persisted."""

    acceptable: bool
    score: int = Field(..., ge=0, le=5)
    tier: StrengthTier
    hints: list[str] = Field(default_factory=list)


class UserRecord(BaseModel):
    """A registered user as stored in the users collection."""

    id: str
    name: str | None = None
    email: str
    password_hash: str = Field(..., repr=False)
    role: Role = Role.USER
    country: str | None = None
    reset_token_digest: str | None = Field(None, repr=False)
    reset_token_expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    def to_profile(self) -> "PublicProfile":
        """Fields that are safe to return to a client."""
        return PublicProfile(
            id=self.id,
            name=self.name,
            email=self.email,
            role=self.role,
            country=self.country,
            created_at=self.created_at,
        )


class PublicProfile(BaseModel):
    """User info returned to clients. Never includes credential material."""

    id: str
    name: str | None = None
    email: str
    role: Role
    country: str | None = None
    created_at: datetime | None = None


class SessionClaims(BaseModel):
    """Verified contents of a session token."""

    user_id: str
    email: str
    role: Role
    issued_at: datetime
    expires_at: datetime


class AuthSession(BaseModel):
    """Session token plus the profile it was issued for."""

    token: str
    user: PublicProfile


class LoginAttempt(BaseModel):
    """Failed-login counter for one (email, IP) pair."""

    email: str
    ip_address: str
    attempts: int = Field(..., ge=0)
    last_attempt: datetime
    locked_until: datetime | None = None


class AttemptCheck(BaseModel):
    """Outcome of consulting the login attempt tracker."""

    allowed: bool
    message: str | None = None
    remaining_attempts: int | None = None
    retry_after_seconds: int | None = None


class ActivityAction(str, Enum):
    """Audit action tags."""

    REGISTER = "REGISTER"
    LOGIN = "LOGIN"
    PASSWORD_RESET_REQUEST = "PASSWORD_RESET_REQUEST"
    PASSWORD_RESET = "PASSWORD_RESET"
    PASSWORD_CHANGE = "PASSWORD_CHANGE"
    ACCOUNT_DELETE = "ACCOUNT_DELETE"
    ROLE_CHANGE = "ROLE_CHANGE"


class ActivityLogEntry(BaseModel):
    """Append-only audit record."""

    user_id: str
    user_name: str | None = None
    user_email: str
    action: ActivityAction
    description: str
    ip_address: str | None = None
    user_agent: str | None = None
    target_user_id: str | None = None
    target_user_name: str | None = None
    metadata: dict[str, Any] | None = None
    created_at: datetime | None = None


class RequestContext(BaseModel):
    """Origin metadata for the current request."""

    ip_address: str = "unknown"
    user_agent: str | None = None


# Request payloads


class RegisterRequest(BaseModel):
    """Public registration payload.

    role is accepted for compatibility with older clients but ignored:
    public registration always creates a plain user.
    """

    name: str | None = Field(None, max_length=255)
    email: NormalizedEmail
    password: Password
    country: str | None = Field(None, max_length=100)
    role: Any = None


class LoginRequest(BaseModel):
    email: NormalizedEmail
    password: Password


class ForgotPasswordRequest(BaseModel):
    email: NormalizedEmail


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    password: Password


class ChangePasswordRequest(BaseModel):
    current_password: Password
    new_password: Password


class DeleteAccountRequest(BaseModel):
    password: Password


class RoleChangeRequest(BaseModel):
    role: Role
