"""
Pydantic models for user accounts and authentication payloads.

Field names on the wire are camelCase (``passwordConfirm``,
``currentPassword``) to match the stored documents; the models accept
either the alias or the Python attribute name.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, HttpUrl, field_validator, model_validator

# Georgian mobile numbers: optional +995 / 995 prefix, then 5XXXXXXXX.
PHONE_PATTERN = re.compile(r"^(\+?995)?5\d{8}$")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


class UserRole(str, Enum):
    CUSTOMER = "customer"
    SERVICE_PROVIDER = "service_provider"
    MODERATOR = "moderator"
    ADMIN = "admin"


# Roles a user may pick for themselves at signup.
SELF_ASSIGNABLE_ROLES = (UserRole.CUSTOMER, UserRole.SERVICE_PROVIDER)


def normalize_phone(value: str) -> str:
    """Return a Georgian mobile number in the stored ``+9955XXXXXXXX`` form.

    Spaces and dashes are ignored and the ``+995`` / ``995`` prefix is
    optional on input.
    """
    compact = re.sub(r"[\s-]", "", value)
    if not PHONE_PATTERN.match(compact):
        raise ValueError("phone must be a valid Georgian mobile number")
    return "+995" + compact[-9:]


def check_password_strength(value: str) -> str:
    if not 8 <= len(value) <= 16:
        raise ValueError("password must be between 8 and 16 characters long")
    if not (
        any(c.islower() for c in value)
        and any(c.isupper() for c in value)
        and any(c.isdigit() for c in value)
        and _SYMBOL.search(value)
    ):
        raise ValueError(
            "password must contain at least one lowercase letter, one uppercase letter, one digit and one symbol"
        )
    return value


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class SignupRequest(_CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    phone: str
    password: str
    password_confirm: str = Field(..., alias="passwordConfirm")
    role: UserRole = UserRole.CUSTOMER
    profile_image: Optional[HttpUrl] = Field(None, alias="profileImage")

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return normalize_phone(v)

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @field_validator("role")
    @classmethod
    def self_assignable(cls, v: UserRole) -> UserRole:
        if v not in SELF_ASSIGNABLE_ROLES:
            raise ValueError("role must be customer or service_provider")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupRequest":
        if self.password != self.password_confirm:
            raise ValueError("passwords do not match")
        return self


class LoginRequest(_CamelModel):
    # Optional so that a missing field is reported by the login handler
    # with the same message as an empty one.
    email: Optional[str] = None
    password: Optional[str] = None


class VerifyPhoneRequest(_CamelModel):
    phone: str
    code: str = Field(..., min_length=6, max_length=6)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        return normalize_phone(v)


class ForgotPasswordRequest(_CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(_CamelModel):
    password: str
    password_confirm: str = Field(..., alias="passwordConfirm")

    @field_validator("password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "ResetPasswordRequest":
        if self.password != self.password_confirm:
            raise ValueError("passwords do not match")
        return self


class UpdatePasswordRequest(_CamelModel):
    current_password: str = Field(..., alias="currentPassword")
    new_password: str = Field(..., alias="newPassword")
    password_confirm: str = Field(..., alias="passwordConfirm")

    @field_validator("new_password")
    @classmethod
    def strong_password(cls, v: str) -> str:
        return check_password_strength(v)

    @model_validator(mode="after")
    def passwords_match(self) -> "UpdatePasswordRequest":
        if self.new_password != self.password_confirm:
            raise ValueError("passwords do not match")
        return self
