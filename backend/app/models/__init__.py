"""Database models"""

from app.models.account import Account
from app.models.security import RefreshToken
from app.models.audit import AuditEvent

__all__ = ["Account", "RefreshToken", "AuditEvent"]
