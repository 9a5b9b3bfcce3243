"""Pydantic schemas for authentication endpoints."""

import re
from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, Field

from nivaro.services.password import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_RULES = "Password must be at least 8 characters with uppercase, lowercase, number, and special character"


def validate_email(value: str) -> str:
    value = value.strip()
    if len(value) > 256 or not EMAIL_PATTERN.match(value):
        raise ValueError("Invalid email format")
    return value


def validate_password_strength(value: str) -> str:
    if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    if (
        len(value) < 8
        or not any(c.isupper() for c in value)
        or not any(c.islower() for c in value)
        or not any(c.isdigit() for c in value)
        or all(c.isalnum() for c in value)
    ):
        raise ValueError(PASSWORD_RULES)
    return value


def validate_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


Email = Annotated[str, AfterValidator(validate_email)]
NewPassword = Annotated[str, AfterValidator(validate_password_strength)]
Name = Annotated[str, Field(max_length=256), AfterValidator(validate_name)]


class SignupRequest(BaseModel):
    email: Email
    password: NewPassword
    name: Name


class LoginRequest(BaseModel):
    email: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, max_length=1024)


class ForgotPasswordRequest(BaseModel):
    email: Email


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)
    new_password: NewPassword


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=1024)
    new_password: NewPassword


class VerifyEmailRequest(BaseModel):
    token: str = Field(min_length=1, max_length=256)


class UpdateProfileRequest(BaseModel):
    name: Name | None = None
    email: Email | None = None
    avatar: str | None = Field(default=None, max_length=1024)


class SocialLoginRequest(BaseModel):
    provider: Literal["google", "github"]
    access_token: str = Field(min_length=1, max_length=4096)


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    avatar: str | None
    email_verified: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    success: bool = True
    user: UserResponse
    token: str | None = None
    expires_at: datetime | None = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class SessionResponse(BaseModel):
    id: str
    created_at: datetime
    last_accessed: datetime
    expires_at: datetime
    user_agent: str | None
    ip_address: str | None
    is_current: bool = False

    model_config = {"from_attributes": True}


class SessionListResponse(BaseModel):
    items: list[SessionResponse]
    total: int


class CSRFTokenResponse(BaseModel):
    token: str
    expires_at: datetime
