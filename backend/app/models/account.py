"""Account model"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from app.core.database import Base


class Account(Base):
    """Account model for authentication and authorization"""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(20), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default="User", nullable=False, index=True)
    accept_terms = Column(Boolean, default=False, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    verification_token = Column(String(128), nullable=True, index=True)
    reset_token = Column(String(128), nullable=True, index=True)
    reset_token_expires = Column(DateTime, nullable=True)
    created = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated = Column(DateTime, nullable=True, onupdate=datetime.utcnow)
    verified = Column(DateTime, nullable=True)
    password_reset = Column(DateTime, nullable=True)

    # Relationships
    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="account",
        cascade="all, delete-orphan",
    )
    audit_events = relationship("AuditEvent", back_populates="actor")

    __table_args__ = (
        Index('idx_accounts_role', 'role'),
    )

    def __repr__(self):
        return f"<Account(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def is_admin(self) -> bool:
        return self.role == "Admin"
