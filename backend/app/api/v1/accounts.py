"""Account routes - authentication, recovery and account administration"""

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from app.core.database import get_db
from app.config import settings
from app.core.security import Principal
from app.core.exceptions import RateLimitExceededError, ValidationError
from app.schemas.account import (
    AccountCreate,
    AccountResponse,
    AccountRole,
    AccountUpdate,
    AuthenticateRequest,
    AuthResponse,
    ForgotPasswordRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenRequest,
    ValidateResetTokenRequest,
    VerifyEmailRequest,
)
from app.schemas.response import MessageResponse
from app.services.account_service import account_service
from app.services.token_service import token_service
from app.services.rate_limiter import rate_limiter
from app.api.deps import authorize, get_client_ip, get_origin
from app.models.account import Account
from app.models.security import RefreshToken

router = APIRouter()

REGISTER_MESSAGE = "Registration successful, please check your email for verification instructions"
FORGOT_PASSWORD_MESSAGE = "Please check your email for password reset instructions"


def _enforce_limits(prefix: str, key: str, per_minute: Optional[int], per_hour: int) -> None:
    if per_minute is not None:
        retry_after = rate_limiter.hit(f"{prefix}:min:{key}", per_minute, 60)
        if retry_after:
            raise RateLimitExceededError("Too many attempts. Please wait a minute.", retry_after)
    retry_after = rate_limiter.hit(f"{prefix}:hour:{key}", per_hour, 3600)
    if retry_after:
        raise RateLimitExceededError(retry_after=retry_after)


def _set_refresh_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.REFRESH_COOKIE_SECURE,
        samesite=settings.REFRESH_COOKIE_SAMESITE,
        path=settings.REFRESH_COOKIE_PATH,
        max_age=settings.refresh_cookie_max_age,
    )


def _token_from(request: Request, body: Optional[TokenRequest]) -> str:
    """Refresh token from the request body, falling back to the cookie"""
    token = (body.token if body else None) or request.cookies.get(settings.REFRESH_COOKIE_NAME)
    if not token:
        raise ValidationError("Token is required")
    return token


def _auth_response(response: Response, account: Account, access_token: str, refresh: RefreshToken) -> AuthResponse:
    _set_refresh_cookie(response, refresh.token)
    return AuthResponse(
        access_token=access_token,
        refresh_token=refresh.token,
        token_type="bearer",
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        account=AccountResponse.model_validate(account),
    )


@router.post("/authenticate", response_model=AuthResponse)
def authenticate(
    credentials: AuthenticateRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Authenticate with email and password

    Returns the profile and an access token; the refresh token is returned
    and also set as an HTTP-only cookie.
    """
    client_ip = get_client_ip(request)
    _enforce_limits(
        "login",
        f"{client_ip}:{credentials.email.strip().lower()}",
        settings.LOGIN_RATE_LIMIT_PER_MINUTE,
        settings.LOGIN_RATE_LIMIT_PER_HOUR,
    )

    account, access_token, refresh = account_service.authenticate(
        db, credentials.email, credentials.password, client_ip, get_origin(request)
    )
    return _auth_response(response, account, access_token, refresh)


@router.post("/refresh-token", response_model=AuthResponse)
def refresh_token(
    request: Request,
    response: Response,
    body: Optional[TokenRequest] = None,
    db: Session = Depends(get_db),
):
    """Rotate a refresh token and issue a new token pair"""
    client_ip = get_client_ip(request)
    _enforce_limits("refresh", client_ip, settings.RATE_LIMIT_PER_MINUTE, settings.RATE_LIMIT_PER_HOUR)

    account, access_token, refresh = token_service.rotate_refresh_token(
        db, _token_from(request, body), client_ip
    )
    return _auth_response(response, account, access_token, refresh)


@router.post("/revoke-token", response_model=MessageResponse)
def revoke_token(
    request: Request,
    body: Optional[TokenRequest] = None,
    principal: Principal = Depends(authorize()),
    db: Session = Depends(get_db),
):
    """Revoke a refresh token (own tokens, or any token for admins)"""
    token_service.revoke_refresh_token(db, _token_from(request, body), get_client_ip(request), principal)
    return MessageResponse(message="Token revoked")


@router.post("/register", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Register a new account

    The response is identical whether or not the email was already taken.
    """
    account_service.register(db, payload, get_origin(request))
    return MessageResponse(message=REGISTER_MESSAGE)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(
    payload: VerifyEmailRequest,
    db: Session = Depends(get_db)
):
    account_service.verify_email(db, payload.token)
    return MessageResponse(message="Verification successful, you can now login")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Request a password reset email

    Always answers with the same payload so account existence is not revealed.
    """
    _enforce_limits("recovery", get_client_ip(request), None, settings.RECOVERY_RATE_LIMIT_PER_HOUR)
    account_service.forgot_password(db, payload.email, get_origin(request))
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


@router.post("/validate-reset-token", response_model=MessageResponse)
def validate_reset_token(
    payload: ValidateResetTokenRequest,
    db: Session = Depends(get_db)
):
    account_service.validate_reset_token(db, payload.token)
    return MessageResponse(message="Token is valid")


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(
    payload: ResetPasswordRequest,
    request: Request,
    db: Session = Depends(get_db)
):
    account_service.reset_password(db, payload.token, payload.password, get_client_ip(request))
    return MessageResponse(message="Password reset successful, you can now login")


@router.get("/me", response_model=AccountResponse)
def get_my_account(
    principal: Principal = Depends(authorize()),
    db: Session = Depends(get_db)
):
    """Get the caller's own account"""
    return AccountResponse.model_validate(account_service.get_account(db, principal.id))


@router.get("/", response_model=List[AccountResponse])
def get_all_accounts(
    principal: Principal = Depends(authorize([AccountRole.ADMIN])),
    db: Session = Depends(get_db)
):
    """Get all accounts (admin only)"""
    return [AccountResponse.model_validate(account) for account in account_service.list_accounts(db)]


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    principal: Principal = Depends(authorize()),
    db: Session = Depends(get_db)
):
    """Get an account (self, or any account for admins)"""
    account_service.ensure_self_or_admin(principal, account_id)
    return AccountResponse.model_validate(account_service.get_account(db, account_id))


@router.post("/", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def create_account(
    payload: AccountCreate,
    request: Request,
    principal: Principal = Depends(authorize([AccountRole.ADMIN])),
    db: Session = Depends(get_db)
):
    """Create an account (admin only)"""
    account = account_service.create_account(db, payload, principal, get_client_ip(request))
    return AccountResponse.model_validate(account)


@router.put("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: int,
    payload: AccountUpdate,
    request: Request,
    principal: Principal = Depends(authorize()),
    db: Session = Depends(get_db)
):
    """Update an account (self, or any account for admins)"""
    account = account_service.update_account(db, account_id, payload, principal, get_client_ip(request))
    return AccountResponse.model_validate(account)


@router.delete("/{account_id}", response_model=MessageResponse)
def delete_account(
    account_id: int,
    request: Request,
    principal: Principal = Depends(authorize()),
    db: Session = Depends(get_db)
):
    """Delete an account (self, or any account for admins)"""
    account_service.delete_account(db, account_id, principal, get_client_ip(request))
    return MessageResponse(message="Account deleted successfully")
