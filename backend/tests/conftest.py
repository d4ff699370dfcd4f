import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("DB_INIT_MODE", "off")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "accounts-api-tests.log"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.security import get_password_hash
from app.main import app
from app.models.account import Account
from app.services.email_service import email_service
from app.services.rate_limiter import rate_limiter

PASSWORD = "Passw0rd!"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """Capture outgoing email instead of sending it."""
    sent = []

    def fake_send(to_email, subject, html_body):
        sent.append({"to": to_email, "subject": subject, "html": html_body})
        return True

    monkeypatch.setattr(email_service, "send", fake_send)
    return sent


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_account(db):
    def _make(
        email: str,
        *,
        password: str = PASSWORD,
        role: str = "User",
        is_verified: bool = True,
        is_active: bool = True,
    ) -> Account:
        account = Account(
            title="Mx",
            first_name="Test",
            last_name=email.split("@")[0],
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            accept_terms=True,
            is_verified=is_verified,
            is_active=is_active,
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make
