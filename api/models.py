"""
API request and response models for the admin REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (isEmailVerified, currentPassword, clientFit) to
match the admin panel front end. Python attribute names stay snake_case; the
alias generator does the translation and populate_by_name lets tests build
models with either spelling.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints
from pydantic.alias_generators import to_camel

from auth.models import Account, Permissions

# Transport cap on password fields. The strength policy enforces the tighter
# bcrypt limit (72 UTF-8 bytes) with a readable message.
_PASSWORD_MAX = 128

_Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)


class _CredentialModel(BaseModel):
    """Request bodies carrying secrets. Never strips whitespace: a password is
    hashed and compared exactly as typed, the same as the CLI does."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _CamelResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = "admin"
    super_admin = "super_admin"


class StatusEnum(str, Enum):
    pending = "pending"
    active = "active"
    suspended = "suspended"


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class PermissionsModel(_CamelModel):
    """Wire shape of auth.models.Permissions. Every flag is required on input."""

    dashboard: bool
    projects: bool
    services: bool
    capabilities: bool
    client_fit: bool
    process: bool
    about: bool
    tech_stack: bool
    trust_signals: bool
    media: bool
    inbox: bool
    site_config: bool
    form_options: bool
    users: bool

    @classmethod
    def from_domain(cls, permissions: Permissions) -> "PermissionsModel":
        return cls(**permissions.to_dict())

    def to_domain(self) -> Permissions:
        return Permissions(**self.model_dump())


class MessageResponse(_CamelResponse):
    message: str


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CredentialModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    name: _Name


class LoginRequest(_CredentialModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class ChangePasswordRequest(_CredentialModel):
    current_password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    new_password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class VerifyEmailRequest(_CamelModel):
    email: EmailStr
    code: str = Field(pattern=r"^\d{6}$", description="6-digit verification code")


class EmailRequest(_CamelModel):
    """Body for resend-verification, forgot-password and check-status."""

    email: EmailStr


class ResetPasswordRequest(_CredentialModel):
    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserSummary(_CamelResponse):
    id: str
    email: str
    name: str


class RegisterResponse(_CamelResponse):
    message: str
    email: str
    user: UserSummary


class SessionUser(_CamelResponse):
    id: str
    email: str
    name: str
    role: str
    permissions: PermissionsModel

    @classmethod
    def from_account(cls, account: Account) -> "SessionUser":
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            permissions=PermissionsModel.from_domain(account.permissions),
        )


class LoginResponse(_CamelResponse):
    token: str
    user: SessionUser


class VerifiedUser(SessionUser):
    is_email_verified: bool

    @classmethod
    def from_account(cls, account: Account) -> "VerifiedUser":
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            permissions=PermissionsModel.from_domain(account.permissions),
            is_email_verified=account.email_verified,
        )


class VerifyResponse(_CamelResponse):
    user: VerifiedUser


class StatusResponse(_CamelResponse):
    status: str
    is_email_verified: bool


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


class UserUpdate(_CamelModel):
    """Body for PUT /users/{id}. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    status: Optional[StatusEnum] = None
    role: Optional[RoleEnum] = None
    permissions: Optional[PermissionsModel] = None


class UserResponse(_CamelResponse):
    id: str
    email: str
    name: str
    role: str
    status: str
    permissions: PermissionsModel
    is_email_verified: bool
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_account(cls, account: Account) -> "UserResponse":
        """Factory Method -- the domain-to-wire mapping lives next to the output model."""
        return cls(
            id=account.id,
            email=account.email,
            name=account.name,
            role=account.role,
            status=account.status,
            permissions=PermissionsModel.from_domain(account.permissions),
            is_email_verified=account.email_verified,
            last_login=account.last_login_at,
            created_at=account.created_at,
            updated_at=account.updated_at,
        )


class UserActionResponse(_CamelResponse):
    message: str
    user: UserResponse


class StatsResponse(_CamelResponse):
    """Response for GET /api/admin/stats."""

    total_users: int
    by_status: dict[str, int]
    awaiting_approval: int


# ---------------------------------------------------------------------------
# Service info, health, errors
# ---------------------------------------------------------------------------


class Viewer(_CamelResponse):
    email: str
    role: str


class ApiInfoResponse(_CamelResponse):
    name: str
    version: str
    endpoints: dict[str, str]
    viewer: Optional[Viewer] = None


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str | list] = None


class ErrorResponse(_CamelResponse):
    """Top-level error envelope returned on 4xx/5xx responses.

    requires_verification / requires_approval are only present on the two
    login rejections that the admin panel turns into a follow-up screen.
    """

    error: ErrorDetail
    requires_verification: Optional[bool] = None
    requires_approval: Optional[bool] = None

    def to_content(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
