"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class InvalidCredentialsError(AuthenticationError):
    """Password does not match"""
    def __init__(self):
        super().__init__("Email or password is incorrect")


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token unknown, expired, revoked or already rotated"""
    def __init__(self):
        super().__init__("Invalid token")


# Authorization Errors
class AuthorizationError(BaseAPIException):
    """Insufficient permissions"""
    def __init__(self, message: str = "Forbidden - Insufficient permissions"):
        super().__init__(message, status_code=403)


class ForbiddenError(AuthorizationError):
    """Requester may not act on this resource"""
    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class AccountInactiveError(AuthorizationError):
    """Account has been deactivated"""
    def __init__(self):
        super().__init__("Account is inactive")


class EmailNotVerifiedError(AuthorizationError):
    """Account email has not been verified"""
    def __init__(self):
        super().__init__("Email not verified. A new verification email has been sent")


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class AccountNotFoundError(ResourceNotFoundError):
    """No account matches"""
    def __init__(self):
        super().__init__("Account")


class TokenNotFoundError(ResourceNotFoundError):
    """No active refresh token matches"""
    def __init__(self):
        super().__init__("Token")


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class EmailAlreadyRegisteredError(BusinessLogicError):
    """Email already belongs to an account"""
    def __init__(self, email: str):
        super().__init__(f"Email '{email}' is already registered")


class VerificationFailedError(BusinessLogicError):
    """Verification token unknown or already used"""
    def __init__(self):
        super().__init__("Verification failed")


class InvalidOrExpiredTokenError(BusinessLogicError):
    """Reset token unknown, consumed or expired"""
    def __init__(self):
        super().__init__("Invalid or expired token")


# System Errors
class RateLimitExceededError(BaseAPIException):
    """Too many attempts from one caller"""
    def __init__(self, message: str = "Too many attempts. Please try again later.", retry_after: int = 60):
        super().__init__(message, status_code=429, details={"retry_after": retry_after})
        self.retry_after = retry_after
