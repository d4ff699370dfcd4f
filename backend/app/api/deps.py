"""API dependencies - authentication and authorization"""

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Callable, Iterable, Optional

from app.config import settings
from app.core.database import get_db
from app.core.security import Principal, decode_access_token
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.models.account import Account
from app.services.account_service import account_service
from app.services.token_service import token_service
import logging

logger = logging.getLogger(__name__)

# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)


def get_client_ip(request: Request) -> str:
    """Best-effort client IP for token metadata and rate limiting"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_origin(request: Request) -> str:
    """
    Origin for links in outgoing email

    Only origins listed in CORS_ORIGINS are used; anything else yields an
    empty string so the email carries the bare token instead of a link.
    """
    origin = request.headers.get("origin", "").strip().rstrip("/")
    allowed = {allowed.rstrip("/") for allowed in settings.CORS_ORIGINS}
    if origin and origin in allowed:
        return origin
    if origin:
        logger.warning("Ignoring untrusted origin for email links: %s", origin)
    return ""


def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> Account:
    """
    Resolve the account behind a bearer access token

    The account is re-read on every request, so deactivation and role
    changes apply immediately rather than when the token expires.

    Raises:
        AuthenticationError: If the token is missing/invalid or the account is gone
    """
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Unauthorized - Missing token")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Unauthorized - Invalid token")

    account_id = payload.get("id") or payload.get("sub")
    try:
        account_id = int(account_id)
    except (TypeError, ValueError):
        raise AuthenticationError("Unauthorized - Invalid token")

    account = account_service.get_account_by_id(db, account_id)
    if not account:
        raise AuthenticationError("Unauthorized - Account not found")

    if not account.is_active:
        raise AuthenticationError("Unauthorized - Account is inactive")

    request.state.account_id = account.id
    return account


def authorize(roles: Iterable[str] = ()) -> Callable[..., Principal]:
    """
    Build a dependency that authenticates the caller and enforces a role set

    Args:
        roles: Roles allowed on the route; empty means any authenticated account

    Returns:
        Dependency yielding the request Principal
    """
    required = frozenset(str(getattr(role, "value", role)) for role in roles)

    def dependency(
        account: Account = Depends(get_current_account),
        db: Session = Depends(get_db),
    ) -> Principal:
        if required and account.role not in required:
            raise AuthorizationError()

        active_tokens = token_service.active_tokens_for(db, account.id)
        return Principal(
            id=account.id,
            role=account.role,
            owns_token=lambda token: token in active_tokens,
        )

    return dependency
