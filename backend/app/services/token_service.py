"""Refresh token issuance, rotation and revocation service."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Set, Tuple
import logging

from sqlalchemy import update
from sqlalchemy.orm import Session

from app.config import settings
from app.core.exceptions import ForbiddenError, InvalidRefreshTokenError, TokenNotFoundError
from app.core.security import Principal, create_access_token, generate_opaque_token
from app.models.account import Account
from app.models.security import RefreshToken
from app.services.audit_service import audit_service

logger = logging.getLogger(__name__)


class TokenService:
    """Manage access tokens and the refresh-token ledger."""

    @staticmethod
    def issue_access_token(account: Account) -> str:
        return create_access_token({"sub": str(account.id), "id": account.id, "role": account.role})

    @staticmethod
    def _new_refresh_record(account_id: int, token: str, client_ip: Optional[str]) -> RefreshToken:
        return RefreshToken(
            account_id=account_id,
            token=token,
            expires=datetime.utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
            created_by_ip=client_ip,
            is_active=True,
        )

    @staticmethod
    def issue_refresh_token(db: Session, account: Account, client_ip: Optional[str]) -> RefreshToken:
        """Persist a new refresh token for the account (flushed, not committed)."""
        record = TokenService._new_refresh_record(account.id, generate_opaque_token(), client_ip)
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def issue_token_pair(db: Session, account: Account, client_ip: Optional[str]) -> Tuple[str, RefreshToken]:
        access_token = TokenService.issue_access_token(account)
        refresh = TokenService.issue_refresh_token(db, account, client_ip)
        db.commit()
        return access_token, refresh

    @staticmethod
    def get_active_token(db: Session, token: str) -> Optional[RefreshToken]:
        """Find a refresh token that is active, unexpired and not revoked."""
        if not token:
            return None
        return (
            db.query(RefreshToken)
            .filter(
                RefreshToken.token == token,
                RefreshToken.is_active == True,  # noqa: E712
                RefreshToken.revoked.is_(None),
                RefreshToken.expires > datetime.utcnow(),
            )
            .first()
        )

    @staticmethod
    def active_tokens_for(db: Session, account_id: int) -> Set[str]:
        rows = (
            db.query(RefreshToken.token)
            .filter(
                RefreshToken.account_id == account_id,
                RefreshToken.is_active == True,  # noqa: E712
                RefreshToken.revoked.is_(None),
                RefreshToken.expires > datetime.utcnow(),
            )
            .all()
        )
        return {row.token for row in rows}

    @staticmethod
    def _claim(
        db: Session,
        record_id: int,
        client_ip: Optional[str],
        replaced_by: Optional[str] = None,
    ) -> bool:
        """
        Revoke a token only if it is still active.

        The WHERE clause is the compare-and-swap: of several transactions
        presenting the same token, exactly one sees rowcount == 1.
        """
        result = db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == record_id,
                RefreshToken.is_active == True,  # noqa: E712
                RefreshToken.revoked.is_(None),
            )
            .values(
                revoked=datetime.utcnow(),
                revoked_by_ip=client_ip,
                is_active=False,
                replaced_by_token=replaced_by,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def rotate_refresh_token(
        db: Session, token: str, client_ip: Optional[str]
    ) -> Tuple[Account, str, RefreshToken]:
        """
        Exchange a usable refresh token for a new access/refresh pair.

        Raises:
            InvalidRefreshTokenError: token unusable, already rotated, or owner inactive
        """
        record = TokenService.get_active_token(db, token)
        if not record:
            raise InvalidRefreshTokenError()

        account = db.get(Account, record.account_id)
        if not account or not account.is_active:
            raise InvalidRefreshTokenError()

        new_value = generate_opaque_token()
        if not TokenService._claim(db, record.id, client_ip, replaced_by=new_value):
            logger.warning("Refresh token rotation lost race for account %s", account.id)
            db.rollback()
            raise InvalidRefreshTokenError()

        new_record = TokenService._new_refresh_record(account.id, new_value, client_ip)
        db.add(new_record)
        access_token = TokenService.issue_access_token(account)
        db.commit()

        logger.info("Rotated refresh token for account %s", account.id)
        return account, access_token, new_record

    @staticmethod
    def revoke_refresh_token(
        db: Session, token: str, client_ip: Optional[str], requester: Principal
    ) -> None:
        """
        Revoke a refresh token without issuing a successor.

        Raises:
            TokenNotFoundError: no active token matches
            ForbiddenError: requester is neither the owner nor an Admin
        """
        record = TokenService.get_active_token(db, token)
        if not record:
            raise TokenNotFoundError()
        if not requester.is_admin and not requester.owns_token(token):
            raise ForbiddenError()

        owner_id = record.account_id
        if not TokenService._claim(db, record.id, client_ip):
            db.rollback()
            raise TokenNotFoundError()
        db.commit()

        audit_service.record(
            db, "refresh_token.revoke", actor_id=requester.id, subject_id=owner_id, client_ip=client_ip
        )
        logger.info("Account %s revoked a refresh token of account %s", requester.id, owner_id)

    @staticmethod
    def revoke_all_for_account(db: Session, account_id: int, client_ip: Optional[str]) -> int:
        """Revoke every active token of an account (caller commits)."""
        result = db.execute(
            update(RefreshToken)
            .where(
                RefreshToken.account_id == account_id,
                RefreshToken.is_active == True,  # noqa: E712
                RefreshToken.revoked.is_(None),
            )
            .values(revoked=datetime.utcnow(), revoked_by_ip=client_ip, is_active=False)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount


token_service = TokenService()
