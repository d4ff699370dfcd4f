"""Audit trail for account changes made through the API"""

from typing import Any, List, Optional

from sqlalchemy.orm import Session

from app.models.audit import AuditEvent
import logging

logger = logging.getLogger(__name__)


class AuditService:
    """Record and read account audit events"""

    @staticmethod
    def record(
        db: Session,
        action: str,
        *,
        actor_id: Optional[int],
        subject_id: Optional[int],
        client_ip: Optional[str] = None,
        **details: Any,
    ) -> AuditEvent:
        """
        Store an audit event in its own commit

        Call after the audited change has been committed, so a rolled back
        change never leaves a trail entry behind.
        """
        event = AuditEvent(
            actor_id=actor_id,
            subject_id=subject_id,
            action=action,
            ip_address=client_ip,
            details=details,
        )
        db.add(event)
        db.commit()
        logger.debug("Audit %s by %s on %s", action, actor_id, subject_id)
        return event

    @staticmethod
    def history(db: Session, subject_id: int) -> List[AuditEvent]:
        """Events about one account, oldest first"""
        return (
            db.query(AuditEvent)
            .filter(AuditEvent.subject_id == subject_id)
            .order_by(AuditEvent.created, AuditEvent.id)
            .all()
        )


audit_service = AuditService()
