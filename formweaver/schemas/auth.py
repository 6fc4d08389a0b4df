"""Authentication-related Pydantic schemas."""

import re
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from formweaver.db.enums import Role
from formweaver.schemas.common import CamelModel


_PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_PASSWORD_MESSAGE = (
    "Password must contain at least one lowercase letter, "
    "one uppercase letter, and one number"
)


def _check_password_strength(value: str) -> str:
    if not _PASSWORD_RULE.match(value):
        raise ValueError(_PASSWORD_MESSAGE)
    return value


# =============================================================================
# Requests
# =============================================================================

class SignupRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=100)
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class EmailVerificationRequest(CamelModel):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(CamelModel):
    email: EmailStr


class ResetPasswordConfirmRequest(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=100)

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return _check_password_strength(value)


# =============================================================================
# Session context
# =============================================================================

class AuthContext(BaseModel):
    """
    Identity attached to an authenticated request (from the access token).

    Role here is the token's claim; authorization decisions use the
    membership row (see ``WorkspaceSession``).
    """
    user_id: UUID
    email: str
    workspace_id: UUID | None = None
    role: str | None = None


class WorkspaceSession(BaseModel):
    """Membership-verified context for workspace-scoped endpoints."""
    user_id: UUID
    workspace_id: UUID
    role: Role


# =============================================================================
# Responses
# =============================================================================

class UserRead(CamelModel):
    id: UUID
    email: str
    name: str | None
    email_verified: bool
    created_at: int
    updated_at: int


class WorkspaceRead(CamelModel):
    id: UUID
    name: str
    slug: str
    owner_id: UUID
    plan_type: str
    created_at: int
    updated_at: int


class AuthData(CamelModel):
    user: UserRead
    workspace: WorkspaceRead
    role: Role
    access_token: str
    refresh_token: str


class TokenPairRead(CamelModel):
    access_token: str
    refresh_token: str


class MeData(CamelModel):
    user: UserRead
    workspace: WorkspaceRead
    role: Role
