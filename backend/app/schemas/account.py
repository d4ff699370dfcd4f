"""Account schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime
from enum import Enum

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 72
# bcrypt refuses passwords longer than 72 bytes once UTF-8 encoded
PASSWORD_MAX_BYTES = 72


class AccountRole(str, Enum):
    """Account role enumeration"""
    ADMIN = "Admin"
    USER = "User"


class _PasswordConfirmation(BaseModel):
    """Mixin for models carrying a new password and its confirmation"""

    @field_validator("password", check_fields=False)
    @classmethod
    def password_fits_bcrypt(cls, value):
        if value is not None and len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
            raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
        return value

    @model_validator(mode="after")
    def passwords_match(self):
        password = getattr(self, "password", None)
        if password is not None and password != getattr(self, "confirm_password", None):
            raise ValueError("Passwords do not match")
        return self


class AuthenticateRequest(BaseModel):
    """Login schema"""
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1)


class RegisterRequest(_PasswordConfirmation):
    """Self-service registration schema"""
    title: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str
    accept_terms: bool

    @model_validator(mode="after")
    def terms_accepted(self):
        if not self.accept_terms:
            raise ValueError("Terms must be accepted")
        return self


class AccountCreate(_PasswordConfirmation):
    """Admin account creation schema"""
    title: str = Field(..., min_length=1, max_length=20)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str
    role: AccountRole = AccountRole.USER


class AccountUpdate(_PasswordConfirmation):
    """Partial account update; role and is_active are admin-only"""
    title: Optional[str] = Field(None, min_length=1, max_length=20)
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: Optional[str] = None
    role: Optional[AccountRole] = None
    is_active: Optional[bool] = None


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ValidateResetTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class ResetPasswordRequest(_PasswordConfirmation):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str


class TokenRequest(BaseModel):
    """Refresh/revoke body; the refresh cookie is used when token is omitted"""
    token: Optional[str] = None


class AccountResponse(BaseModel):
    """Account profile response schema"""
    id: int
    title: str
    first_name: str
    last_name: str
    email: str
    role: str
    is_verified: bool
    is_active: bool
    created: datetime
    updated: Optional[datetime] = None

    class Config:
        from_attributes = True


class AuthResponse(BaseModel):
    """Profile plus issued tokens"""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    account: AccountResponse
