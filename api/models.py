"""
API request and response models for the RBAC REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (fullName, cellNumber); Python attributes stay
snake_case. populate_by_name lets tests and internal callers use either.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import MAX_PASSWORD_BYTES, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose -- the directory only needs a stable unique key, and
# deliverability is not this service's concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
ROLE_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class UserStatusEnum(str, Enum):
    active = "active"
    pending = "pending"
    inactive = "inactive"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegistrationRequest(_WireModel):
    """Request body for POST /auth/register.

    roles holds bare names ("user", "admin"); the directory canonicalizes
    them. An empty list registers the account with the default USER role.
    """

    full_name: str = Field(min_length=1, max_length=255)
    cell_number: Optional[str] = Field(default=None, max_length=32)
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=72)
    roles: list[str] = Field(default_factory=list, max_length=10)

    @field_validator("cell_number", mode="before")
    @classmethod
    def stringify_cell_number(cls, value):
        """Accept numeric phone numbers from clients that send them as JSON numbers."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, value: str) -> str:
        # max_length counts characters; "é" is one character but two bytes.
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes when UTF-8 encoded")
        return value


class LoginRequest(_WireModel):
    """Request body for POST /auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


class RoleRequest(_WireModel):
    """Request body for POST /admin/addRole. Either "auditor" or "ROLE_AUDITOR" is accepted."""

    role: str = Field(min_length=1, max_length=50, pattern=ROLE_PATTERN)


class UserStatusUpdate(_WireModel):
    """Request body for POST /admin/updateUserStatus."""

    email: str = Field(min_length=1, max_length=255)
    status: UserStatusEnum

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.lower()


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    message: str


class AuthResponse(_WireModel):
    """Response for a successful POST /auth/login."""

    model_config = ConfigDict(frozen=True)

    token: str
    type: str = "Bearer"


class UserResponse(_WireModel):
    """Public view of a User. The password hash is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: int
    full_name: str
    cell_number: Optional[str]
    email: str
    status: str
    roles: list[str]
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            full_name=user.full_name,
            cell_number=user.cell_number,
            email=user.email,
            status=user.status,
            roles=list(user.roles),
            created_at=user.created_at or "",
        )


class RoleResponse(_WireModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /public/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
