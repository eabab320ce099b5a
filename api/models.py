"""
API request and response models for Shopgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

No response model has a password or password hash field. The mapping
helpers start from SafeIdentity, which has none to copy.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import Claims, Role, SafeIdentity
from catalog.models import Product

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately loose: a shape check, not RFC 5322. Emails are stored and
# compared exactly as submitted.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

# Outer cap only. bcrypt's real limit is 72 UTF-8 bytes, which PasswordPolicy
# enforces (too_long) so multi-byte passwords get a weak_password error.
_PASSWORD_MAX = 72


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class SortEnum(str, Enum):
    asc = "asc"
    desc = "desc"


def _strip_name(value):
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError("display_name must not be blank")
    return value


def _normalize_role(value):
    """Accept "OWNER", "Owner", "owner" alike; pydantic then checks membership."""
    if isinstance(value, str):
        return value.strip().lower()
    return value


# ---------------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    violations: Optional[list[str]] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth -- requests
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    Password strength is NOT validated here -- AuthService applies the policy
    so every violated rule is reported together with a weak_password code.
    role is accepted only so an OWNER request can be refused explicitly.
    Passwords are taken verbatim -- no whitespace stripping on any password field.
    """

    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    display_name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)
    role: Optional[Role] = None

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, value):
        return _strip_name(value)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        return _normalize_role(value)


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=_PASSWORD_MAX)


class IdentityPatch(BaseModel):
    """Request body for PATCH /api/v1/users/{id}. Omitted fields are left unchanged."""

    email: Optional[str] = Field(default=None, pattern=EMAIL_PATTERN, max_length=255)
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    password: Optional[str] = Field(default=None, min_length=1, max_length=_PASSWORD_MAX)
    role: Optional[Role] = None

    @field_validator("display_name")
    @classmethod
    def strip_display_name(cls, value):
        return _strip_name(value)

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        return _normalize_role(value)


# ---------------------------------------------------------------------------
# Auth -- responses
# ---------------------------------------------------------------------------


class IdentityResponse(BaseModel):
    """Public view of an identity."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    display_name: str
    role: Role
    created_at: str
    updated_at: str

    @classmethod
    def from_identity(cls, identity: SafeIdentity) -> "IdentityResponse":
        return cls(
            id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            role=identity.role,
            created_at=identity.created_at,
            updated_at=identity.updated_at,
        )


class MeResponse(BaseModel):
    """The claims the presented token carries -- possibly stale relative to the stored identity."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    display_name: str
    role: Role

    @classmethod
    def from_claims(cls, claims: Claims) -> "MeResponse":
        return cls(
            user_id=claims.subject_id,
            email=claims.email,
            display_name=claims.display_name,
            role=claims.role,
        )


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login. The same token is also set as the jwt cookie."""

    model_config = ConfigDict(frozen=True)

    message: str = "Login successful"
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: MeResponse


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/v1/products. owner_id comes from the token, not the body."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    price: float = Field(ge=0)
    category: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)


class ProductPatch(BaseModel):
    """Request body for PATCH /api/v1/products/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    price: Optional[float] = Field(default=None, ge=0)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=2000)


class ProductResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    price: float
    category: str
    description: Optional[str]
    owner_id: str
    created_at: str
    updated_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductResponse":
        return cls(
            id=product.id,
            name=product.name,
            price=product.price,
            category=product.category,
            description=product.description,
            owner_id=product.owner_id,
            created_at=product.created_at,
            updated_at=product.updated_at,
        )
