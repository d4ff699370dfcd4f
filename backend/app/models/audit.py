"""Account audit trail"""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from app.core.database import Base


class AuditEvent(Base):
    """
    One security-relevant change to an account

    subject_id is a plain column rather than a foreign key so the trail
    outlives the account it describes.
    """

    __tablename__ = "account_audit_events"

    id = Column(Integer, primary_key=True, index=True)
    actor_id = Column(Integer, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True)
    subject_id = Column(Integer, nullable=True, index=True)
    action = Column(String(64), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    details = Column(JSON, nullable=False, default=dict)
    created = Column(DateTime, default=datetime.utcnow, nullable=False)

    actor = relationship("Account", back_populates="audit_events")

    __table_args__ = (
        Index("idx_account_audit_subject_created", "subject_id", "created"),
    )

    def __repr__(self):
        return f"<AuditEvent(action='{self.action}', actor={self.actor_id}, subject={self.subject_id})>"
