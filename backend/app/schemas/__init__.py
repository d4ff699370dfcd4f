"""Pydantic schemas for API validation"""

from app.schemas.account import (
    AccountRole,
    AuthenticateRequest,
    RegisterRequest,
    AccountCreate,
    AccountUpdate,
    VerifyEmailRequest,
    ForgotPasswordRequest,
    ValidateResetTokenRequest,
    ResetPasswordRequest,
    TokenRequest,
    AccountResponse,
    AuthResponse,
)
from app.schemas.response import MessageResponse

__all__ = [
    "AccountRole", "AuthenticateRequest", "RegisterRequest", "AccountCreate", "AccountUpdate",
    "VerifyEmailRequest", "ForgotPasswordRequest", "ValidateResetTokenRequest",
    "ResetPasswordRequest", "TokenRequest", "AccountResponse", "AuthResponse",
    "MessageResponse",
]
