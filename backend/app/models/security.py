"""Security-related persistence models."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship

from app.core.database import Base


class RefreshToken(Base):
    """Refresh token record for rotation/revocation."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(128), unique=True, nullable=False, index=True)
    expires = Column(DateTime, nullable=False)
    created = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by_ip = Column(String(64), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    revoked = Column(DateTime, nullable=True)
    revoked_by_ip = Column(String(64), nullable=True)
    replaced_by_token = Column(String(128), nullable=True)

    account = relationship("Account", back_populates="refresh_tokens")

    __table_args__ = (
        Index("idx_refresh_tokens_account_active", "account_id", "is_active"),
    )

    def __repr__(self):
        return f"<RefreshToken(id={self.id}, account_id={self.account_id}, is_active={self.is_active})>"

    def is_expired(self, now: datetime) -> bool:
        return self.expires <= now

    def is_usable(self, now: datetime) -> bool:
        """Active, unexpired and never revoked"""
        return bool(self.is_active) and self.revoked is None and not self.is_expired(now)
