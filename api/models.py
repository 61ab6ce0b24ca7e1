"""
API request and response models for AccountKit REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Validation lives here as typed fields plus explicit validators; there are no
rule strings. Uniqueness and phone validity need the store / phonenumbers and
are checked by the routes, not by these models.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from auth.models import Account

# bcrypt refuses input past 72 bytes; PASSWORD_MAX is checked on the UTF-8 encoding too.
PASSWORD_MIN = 6
PASSWORD_MAX = 72
COUNTRY_CODE_PATTERN = r"^[A-Za-z]{2}$"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    user = "user"
    admin = "admin"


# ---------------------------------------------------------------------------
# Shared validators
# ---------------------------------------------------------------------------


def _blank_to_none(value):
    """Form posts send "" for untouched optional inputs."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _check_password_bytes(value):
    # bcrypt counts bytes, so "é" * 40 is too long despite being 40 characters.
    if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX:
        raise ValueError(f"password must be at most {PASSWORD_MAX} bytes when UTF-8 encoded")
    return value


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Fields of POST /api/v1/auth/register (sent as multipart form data).

    The profile picture travels as a separate file part and is validated by
    core.media, not here.
    """

    username: str = Field(min_length=1, max_length=255)
    full_name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    password_confirmation: str
    date_of_birth: Optional[date] = None
    is_active: bool = True
    role: RoleEnum = RoleEnum.user
    phone_number: Optional[str] = Field(default=None, max_length=20)
    country_code: Optional[str] = Field(default=None, pattern=COUNTRY_CODE_PATTERN)

    @field_validator("date_of_birth", "phone_number", "country_code", mode="before")
    @classmethod
    def blank_optional(cls, value):
        return _blank_to_none(value)

    @field_validator("username", "full_name", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("password")
    @classmethod
    def password_bytes(cls, value: str) -> str:
        return _check_password_bytes(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: str) -> str:
        """Store emails lower-cased so login-by-email is case-insensitive."""
        return value.lower()

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        return self


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    login accepts an email address, a phone number or a username.
    """

    login: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)
    remember_me: bool = False


class AccountUpdate(BaseModel):
    """Request body for PUT/PATCH /api/v1/users/{id}. Every field is optional.

    Only fields present in the body are applied (model_fields_set). Sending
    "phone_number": null clears the stored number; omitting it leaves it alone.
    """

    username: Optional[str] = Field(default=None, min_length=1, max_length=255)
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(default=None, min_length=PASSWORD_MIN, max_length=PASSWORD_MAX)
    password_confirmation: Optional[str] = None
    date_of_birth: Optional[date] = None
    is_active: Optional[bool] = None
    role: Optional[RoleEnum] = None
    phone_number: Optional[str] = Field(default=None, max_length=20)
    country_code: Optional[str] = Field(default=None, pattern=COUNTRY_CODE_PATTERN)

    @field_validator("username", "full_name", "email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("phone_number", "country_code", mode="before")
    @classmethod
    def blank_optional(cls, value):
        return _blank_to_none(value)

    @field_validator("password")
    @classmethod
    def password_bytes(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)

    @field_validator("email")
    @classmethod
    def lower_email(cls, value: Optional[str]) -> Optional[str]:
        return value.lower() if value is not None else None

    @model_validator(mode="after")
    def check_fields(self) -> "AccountUpdate":
        if self.password is not None and self.password != self.password_confirmation:
            raise ValueError("password confirmation does not match")
        # These columns are NOT NULL; an explicit null is a client error.
        for name in ("username", "full_name", "email", "is_active", "role"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} may not be null")
        return self


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Public view of an account. The password hash is never included."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    full_name: str
    email: str
    date_of_birth: Optional[str]
    profile_picture: Optional[str]
    is_active: bool
    role: str
    phone_number: Optional[str]
    last_login_at: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_account(cls, account: Account) -> "AccountResponse":
        """Factory Method -- the domain-to-API mapping lives next to the model."""
        return cls(
            id=account.id,
            username=account.username,
            full_name=account.full_name,
            email=account.email,
            date_of_birth=account.date_of_birth,
            profile_picture=account.profile_picture,
            is_active=account.is_active,
            role=account.role,
            phone_number=account.phone_number,
            last_login_at=account.last_login_at,
            created_at=account.created_at or "",
            updated_at=account.updated_at or "",
        )


class AuthResponse(BaseModel):
    """Response for register and login: the account plus its new bearer token."""

    model_config = ConfigDict(frozen=True)

    user: AccountResponse
    token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload.

    fields is set on conflicts and lists every clashing unique field.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None
    fields: Optional[list[str]] = None


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
