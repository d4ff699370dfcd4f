"""Account service - registration, authentication, recovery and administration"""

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
from datetime import datetime, timedelta
from app.config import settings
from app.models.account import Account
from app.models.security import RefreshToken
from app.schemas.account import AccountCreate, AccountRole, AccountUpdate, RegisterRequest
from app.core.security import Principal, generate_opaque_token, get_password_hash, verify_password
from app.core.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    EmailAlreadyRegisteredError,
    EmailNotVerifiedError,
    ForbiddenError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    VerificationFailedError,
)
from app.services.audit_service import audit_service
from app.services.email_service import email_service
from app.services.token_service import token_service
import logging

logger = logging.getLogger(__name__)


class AccountService:
    """Service for account lifecycle and credential checks"""

    @staticmethod
    def get_account_by_id(db: Session, account_id: int) -> Optional[Account]:
        """Get account by ID"""
        return db.query(Account).filter(Account.id == account_id).first()

    @staticmethod
    def get_account_by_email(db: Session, email: str) -> Optional[Account]:
        """Get account by email (exact match)"""
        return db.query(Account).filter(Account.email == email).first()

    @staticmethod
    def ensure_self_or_admin(requester: Principal, account_id: int) -> None:
        """Accounts may act on themselves; admins may act on anyone"""
        if requester.id != account_id and not requester.is_admin:
            raise ForbiddenError()

    @staticmethod
    def authenticate(
        db: Session,
        email: str,
        password: str,
        client_ip: Optional[str],
        origin: str = "",
    ) -> Tuple[Account, str, RefreshToken]:
        """
        Authenticate an account and issue a token pair

        Preconditions are checked in order and the first failure wins:
        existence, active flag, verified email, password.

        Args:
            db: Database session
            email: Account email
            password: Plain text password
            client_ip: Caller IP recorded on the refresh token
            origin: Client origin used in a re-sent verification link

        Returns:
            Tuple of (account, access token, refresh token record)
        """
        account = AccountService.get_account_by_email(db, email)

        if not account:
            raise AccountNotFoundError()

        if not account.is_active:
            logger.warning(f"Login attempt for inactive account: {account.id}")
            raise AccountInactiveError()

        if not account.is_verified:
            if not account.verification_token:
                account.verification_token = generate_opaque_token()
                db.commit()
            email_service.send_verification_email(account.email, account.verification_token, origin)
            raise EmailNotVerifiedError()

        if not verify_password(password, account.password_hash):
            logger.info(f"Invalid password for account: {account.id}")
            raise InvalidCredentialsError()

        access_token, refresh_token = token_service.issue_token_pair(db, account, client_ip)

        logger.info(f"Account authenticated: {account.id}")
        return account, access_token, refresh_token

    @staticmethod
    def _lock_accounts_table(db: Session) -> None:
        # Serializes first-account detection; SQLite already serializes writers.
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text("LOCK TABLE accounts IN SHARE ROW EXCLUSIVE MODE"))

    @staticmethod
    def register(db: Session, payload: RegisterRequest, origin: str = "") -> Optional[str]:
        """
        Register a new account

        A duplicate email does not raise: the existing owner is notified by
        email and the caller sees the same outcome as a fresh registration.
        The first account ever stored becomes a verified Admin.

        Returns:
            The verification token, or None when no verification is pending
        """
        if AccountService.get_account_by_email(db, payload.email):
            logger.info("Registration attempted with an already registered email")
            email_service.send_already_registered_email(payload.email, origin)
            return None

        password_hash = get_password_hash(payload.password)

        AccountService._lock_accounts_table(db)
        account = Account(
            title=payload.title,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            password_hash=password_hash,
            role=AccountRole.USER.value,
            accept_terms=payload.accept_terms,
            is_verified=False,
            verification_token=generate_opaque_token(),
        )
        db.add(account)
        db.flush()

        if db.query(Account).count() == 1:
            account.role = AccountRole.ADMIN.value
            account.is_verified = True
            account.verified = datetime.utcnow()
            account.verification_token = None

        try:
            db.commit()
        except IntegrityError:
            # Lost a race against a concurrent registration of the same email
            db.rollback()
            email_service.send_already_registered_email(payload.email, origin)
            return None

        db.refresh(account)
        logger.info(f"Registered account: {account.id} (role: {account.role})")

        if account.verification_token is None:
            return None

        email_service.send_verification_email(account.email, account.verification_token, origin)
        return account.verification_token

    @staticmethod
    def verify_email(db: Session, token: str) -> Account:
        """Mark the account owning the verification token as verified"""
        account = db.query(Account).filter(Account.verification_token == token).first() if token else None

        if not account:
            raise VerificationFailedError()

        account.is_verified = True
        account.verified = datetime.utcnow()
        account.verification_token = None
        db.commit()

        logger.info(f"Email verified for account: {account.id}")
        return account

    @staticmethod
    def forgot_password(db: Session, email: str, origin: str = "") -> None:
        """
        Issue a reset token and email it

        Unknown emails return silently so callers cannot probe for accounts.
        """
        account = AccountService.get_account_by_email(db, email)
        if not account:
            return

        account.reset_token = generate_opaque_token()
        account.reset_token_expires = datetime.utcnow() + timedelta(hours=settings.RESET_TOKEN_EXPIRE_HOURS)
        db.commit()

        email_service.send_password_reset_email(account.email, account.reset_token, origin)
        logger.info(f"Password reset requested for account: {account.id}")

    @staticmethod
    def validate_reset_token(db: Session, token: str) -> Account:
        """Return the account owning an unexpired reset token; no side effects"""
        account = None
        if token:
            account = (
                db.query(Account)
                .filter(
                    Account.reset_token == token,
                    Account.reset_token_expires > datetime.utcnow(),
                )
                .first()
            )

        if not account:
            raise InvalidOrExpiredTokenError()
        return account

    @staticmethod
    def reset_password(db: Session, token: str, password: str, client_ip: Optional[str] = None) -> None:
        """
        Consume a reset token and set a new password

        Clearing the token in the same commit makes it single-use. Existing
        refresh tokens are revoked with it.
        """
        account = AccountService.validate_reset_token(db, token)

        account.password_hash = get_password_hash(password)
        account.reset_token = None
        account.reset_token_expires = None
        account.password_reset = datetime.utcnow()
        revoked = token_service.revoke_all_for_account(db, account.id, client_ip)
        db.commit()

        audit_service.record(
            db,
            "account.password_reset",
            actor_id=account.id,
            subject_id=account.id,
            client_ip=client_ip,
            revoked_refresh_tokens=revoked,
        )
        logger.info(f"Password reset for account: {account.id}")

    @staticmethod
    def list_accounts(db: Session) -> List[Account]:
        """Get all accounts"""
        return db.query(Account).order_by(Account.id).all()

    @staticmethod
    def get_account(db: Session, account_id: int) -> Account:
        account = AccountService.get_account_by_id(db, account_id)
        if not account:
            raise AccountNotFoundError()
        return account

    @staticmethod
    def create_account(
        db: Session,
        payload: AccountCreate,
        requester: Principal,
        client_ip: Optional[str] = None,
    ) -> Account:
        """
        Create an account on behalf of an admin

        Admin-created accounts are verified immediately.
        """
        if AccountService.get_account_by_email(db, payload.email):
            raise EmailAlreadyRegisteredError(payload.email)

        now = datetime.utcnow()
        account = Account(
            title=payload.title,
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            password_hash=get_password_hash(payload.password),
            role=payload.role.value,
            is_verified=True,
            verified=now,
        )
        db.add(account)
        db.commit()
        db.refresh(account)

        audit_service.record(
            db,
            "account.create",
            actor_id=requester.id,
            subject_id=account.id,
            client_ip=client_ip,
            role=account.role,
        )
        logger.info(f"Created account: {account.id} (role: {account.role})")
        return account

    @staticmethod
    def update_account(
        db: Session,
        account_id: int,
        payload: AccountUpdate,
        requester: Principal,
        client_ip: Optional[str] = None,
    ) -> Account:
        """
        Update profile fields; role and is_active require an admin

        Deactivating an account revokes its refresh tokens.
        """
        AccountService.ensure_self_or_admin(requester, account_id)
        account = AccountService.get_account(db, account_id)

        changes = payload.model_dump(exclude_unset=True, exclude={"confirm_password"})
        changed_fields = sorted(changes)
        if ("role" in changes or "is_active" in changes) and not requester.is_admin:
            raise ForbiddenError("Only admins may change role or active status")

        email = changes.get("email")
        if email and email != account.email and AccountService.get_account_by_email(db, email):
            raise EmailAlreadyRegisteredError(email)

        password = changes.pop("password", None)
        if password:
            account.password_hash = get_password_hash(password)

        role = changes.pop("role", None)
        if role is not None:
            account.role = AccountRole(role).value

        for field, value in changes.items():
            if value is not None:
                setattr(account, field, value)

        if changes.get("is_active") is False:
            token_service.revoke_all_for_account(db, account.id, client_ip)

        db.commit()
        db.refresh(account)

        audit_service.record(
            db,
            "account.update",
            actor_id=requester.id,
            subject_id=account.id,
            client_ip=client_ip,
            fields=changed_fields,
        )
        logger.info(f"Updated account: {account.id}")
        return account

    @staticmethod
    def delete_account(
        db: Session,
        account_id: int,
        requester: Principal,
        client_ip: Optional[str] = None,
    ) -> None:
        """Delete an account; its refresh tokens are deleted with it"""
        AccountService.ensure_self_or_admin(requester, account_id)
        account = AccountService.get_account(db, account_id)

        db.delete(account)
        db.commit()

        # a self-deleting actor no longer exists to reference
        audit_service.record(
            db,
            "account.delete",
            actor_id=requester.id if requester.id != account_id else None,
            subject_id=account_id,
            client_ip=client_ip,
        )
        logger.info(f"Deleted account: {account_id}")


# Singleton instance
account_service = AccountService()
