from datetime import datetime, timedelta

import pytest

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
from app.core.security import Principal, verify_password
from app.models.account import Account
from app.models.security import RefreshToken
from app.schemas.account import AccountCreate, AccountUpdate, RegisterRequest
from app.services.account_service import account_service
from app.services.audit_service import audit_service
from app.services.token_service import token_service

PASSWORD = "Passw0rd!"


def _register_payload(email: str, password: str = PASSWORD) -> RegisterRequest:
    return RegisterRequest(
        title="Mx",
        first_name="Test",
        last_name="User",
        email=email,
        password=password,
        confirm_password=password,
        accept_terms=True,
    )


def _principal(account: Account) -> Principal:
    return Principal(id=account.id, role=account.role, owns_token=lambda value: False)


def test_first_registered_account_is_verified_admin(db, outbox):
    token = account_service.register(db, _register_payload("first@example.com"))

    account = account_service.get_account_by_email(db, "first@example.com")
    assert token is None
    assert account.role == "Admin"
    assert account.is_verified is True
    assert account.verified is not None
    assert account.verification_token is None
    assert outbox == []

    authenticated, _, _ = account_service.authenticate(db, "first@example.com", PASSWORD, "10.0.0.1")
    assert authenticated.id == account.id


def test_second_account_must_verify_before_authenticating(db, outbox):
    account_service.register(db, _register_payload("first@example.com"))
    token = account_service.register(db, _register_payload("second@example.com"))

    account = account_service.get_account_by_email(db, "second@example.com")
    assert account.role == "User"
    assert account.is_verified is False
    assert token == account.verification_token
    assert outbox[-1]["to"] == "second@example.com"
    assert token in outbox[-1]["html"]

    with pytest.raises(EmailNotVerifiedError):
        account_service.authenticate(db, "second@example.com", PASSWORD, "10.0.0.1")

    account_service.verify_email(db, token)
    authenticated, access_token, refresh = account_service.authenticate(
        db, "second@example.com", PASSWORD, "10.0.0.1"
    )
    assert authenticated.id == account.id
    assert access_token
    assert refresh.token


def test_duplicate_registration_is_silent_and_notifies_owner(db, outbox):
    account_service.register(db, _register_payload("first@example.com"))

    result = account_service.register(db, _register_payload("first@example.com", "Other123!"))

    assert result is None
    assert db.query(Account).count() == 1
    assert outbox[-1]["to"] == "first@example.com"
    assert outbox[-1]["subject"] == "Email Already Registered"


def test_verification_token_is_single_use(db):
    account_service.register(db, _register_payload("first@example.com"))
    token = account_service.register(db, _register_payload("second@example.com"))

    verified = account_service.verify_email(db, token)
    assert verified.is_verified is True
    assert verified.verification_token is None

    with pytest.raises(VerificationFailedError):
        account_service.verify_email(db, token)


def test_authenticate_unknown_email(db):
    with pytest.raises(AccountNotFoundError):
        account_service.authenticate(db, "ghost@example.com", PASSWORD, "10.0.0.1")


def test_inactive_check_precedes_verification_and_password(db, make_account, outbox):
    make_account("inactive@example.com", is_active=False, is_verified=False)

    with pytest.raises(AccountInactiveError):
        account_service.authenticate(db, "inactive@example.com", "wrong-password", "10.0.0.1")
    assert outbox == []


def test_unverified_check_precedes_password_and_resends_email(db, make_account, outbox):
    account = make_account("pending@example.com", is_verified=False)

    with pytest.raises(EmailNotVerifiedError):
        account_service.authenticate(db, "pending@example.com", "wrong-password", "10.0.0.1")

    db.refresh(account)
    assert account.verification_token is not None
    assert outbox[-1]["to"] == "pending@example.com"
    assert account.verification_token in outbox[-1]["html"]


def test_wrong_password_is_invalid_credentials(db, make_account):
    make_account("user@example.com")

    with pytest.raises(InvalidCredentialsError):
        account_service.authenticate(db, "user@example.com", "wrong-password", "10.0.0.1")
    assert db.query(RefreshToken).count() == 0


def test_email_lookup_is_case_sensitive(db, make_account):
    make_account("user@example.com")

    with pytest.raises(AccountNotFoundError):
        account_service.authenticate(db, "USER@example.com", PASSWORD, "10.0.0.1")


def test_forgot_password_unknown_email_is_silent(db, outbox):
    assert account_service.forgot_password(db, "ghost@example.com") is None
    assert outbox == []


def test_reset_token_round_trip_is_single_use(db, make_account, outbox):
    account = make_account("user@example.com")

    account_service.forgot_password(db, "user@example.com", "https://hr.example.com")
    db.refresh(account)
    token = account.reset_token
    assert token is not None
    assert account.reset_token_expires > datetime.utcnow() + timedelta(hours=23)
    assert "https://hr.example.com/account/reset-password?token=" + token in outbox[-1]["html"]

    assert account_service.validate_reset_token(db, token).id == account.id
    # validation does not consume the token
    assert account_service.validate_reset_token(db, token).id == account.id

    account_service.reset_password(db, token, "NewPassw0rd!")
    db.refresh(account)
    assert account.reset_token is None
    assert account.reset_token_expires is None
    assert account.password_reset is not None
    assert verify_password("NewPassw0rd!", account.password_hash)

    with pytest.raises(InvalidOrExpiredTokenError):
        account_service.reset_password(db, token, "Another1!")
    with pytest.raises(InvalidOrExpiredTokenError):
        account_service.validate_reset_token(db, token)


def test_expired_reset_token_is_rejected(db, make_account):
    account = make_account("user@example.com")
    account_service.forgot_password(db, "user@example.com")
    db.refresh(account)
    token = account.reset_token
    account.reset_token_expires = datetime.utcnow() - timedelta(seconds=1)
    db.commit()

    with pytest.raises(InvalidOrExpiredTokenError):
        account_service.validate_reset_token(db, token)
    with pytest.raises(InvalidOrExpiredTokenError):
        account_service.reset_password(db, token, "NewPassw0rd!")


def test_password_reset_revokes_refresh_tokens(db, make_account):
    account = make_account("user@example.com")
    _, refresh = token_service.issue_token_pair(db, account, "10.0.0.1")
    refresh_value = refresh.token
    account_service.forgot_password(db, "user@example.com")
    db.refresh(account)

    account_service.reset_password(db, account.reset_token, "NewPassw0rd!")

    assert token_service.get_active_token(db, refresh_value) is None


def test_admin_created_account_is_verified(db, make_account):
    admin = make_account("admin@example.com", role="Admin")
    payload = AccountCreate(
        title="Ms",
        first_name="New",
        last_name="Hire",
        email="hire@example.com",
        password=PASSWORD,
        confirm_password=PASSWORD,
        role="Admin",
    )

    created = account_service.create_account(db, payload, _principal(admin))

    assert created.is_verified is True
    assert created.role == "Admin"
    with pytest.raises(EmailAlreadyRegisteredError):
        account_service.create_account(db, payload, _principal(admin))


def test_user_cannot_change_own_role(db, make_account):
    user = make_account("user@example.com")

    with pytest.raises(ForbiddenError):
        account_service.update_account(db, user.id, AccountUpdate(role="Admin"), _principal(user))


def test_user_cannot_update_someone_else(db, make_account):
    user = make_account("user@example.com")
    other = make_account("other@example.com")

    with pytest.raises(ForbiddenError):
        account_service.update_account(db, other.id, AccountUpdate(first_name="X"), _principal(user))


def test_update_rejects_taken_email(db, make_account):
    user = make_account("user@example.com")
    make_account("other@example.com")

    with pytest.raises(EmailAlreadyRegisteredError):
        account_service.update_account(
            db, user.id, AccountUpdate(email="other@example.com"), _principal(user)
        )


def test_update_password_rehashes(db, make_account):
    user = make_account("user@example.com")

    updated = account_service.update_account(
        db,
        user.id,
        AccountUpdate(password="Changed123!", confirm_password="Changed123!"),
        _principal(user),
    )

    assert verify_password("Changed123!", updated.password_hash)


def test_admin_deactivation_revokes_tokens(db, make_account):
    admin = make_account("admin@example.com", role="Admin")
    user = make_account("user@example.com")
    _, refresh = token_service.issue_token_pair(db, user, "10.0.0.1")
    refresh_value = refresh.token

    updated = account_service.update_account(db, user.id, AccountUpdate(is_active=False), _principal(admin))

    assert updated.is_active is False
    assert token_service.get_active_token(db, refresh_value) is None
    with pytest.raises(AccountInactiveError):
        account_service.authenticate(db, "user@example.com", PASSWORD, "10.0.0.1")


def test_delete_account_removes_refresh_tokens(db, make_account):
    user = make_account("user@example.com")
    token_service.issue_token_pair(db, user, "10.0.0.1")
    user_id = user.id

    account_service.delete_account(db, user_id, _principal(user))

    assert db.query(Account).filter(Account.id == user_id).count() == 0
    assert db.query(RefreshToken).filter(RefreshToken.account_id == user_id).count() == 0
    with pytest.raises(AccountNotFoundError):
        account_service.get_account(db, user_id)


def test_admin_actions_leave_an_audit_trail(db, make_account):
    admin = make_account("admin@example.com", role="Admin")
    user = make_account("user@example.com")
    user_id = user.id

    account_service.update_account(
        db, user_id, AccountUpdate(first_name="Renamed"), _principal(admin), "10.0.0.9"
    )
    account_service.delete_account(db, user_id, _principal(admin), "10.0.0.9")

    events = audit_service.history(db, user_id)
    assert [event.action for event in events] == ["account.update", "account.delete"]
    assert events[0].actor_id == admin.id
    assert events[0].details == {"fields": ["first_name"]}
    assert events[1].ip_address == "10.0.0.9"


def test_self_delete_audit_has_no_actor(db, make_account):
    user = make_account("user@example.com")
    user_id = user.id

    account_service.delete_account(db, user_id, _principal(user))

    (event,) = audit_service.history(db, user_id)
    assert event.action == "account.delete"
    assert event.actor_id is None
