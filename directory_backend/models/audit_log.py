"""Audit log model — append-only."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, func

from directory_backend.db.base import Base


class AuditAction(str, enum.Enum):
    USER_SUSPENDED = "user_suspended"
    USER_BANNED = "user_banned"
    USER_VERIFIED = "user_verified"
    REPORT_RESOLVED = "report_resolved"
    ROLE_ASSIGNED = "role_assigned"
    ROLE_REVOKED = "role_revoked"
    PERMISSION_AUDIT_VIEWED = "permission_audit_viewed"
    USER_IMPERSONATED = "user_impersonated"


class AuditLog(Base):
    """Immutable trail of privileged mutations.

    This table is APPEND-ONLY: no UPDATE or DELETE operations should ever
    be performed on it (enforced at application level). ``user_id`` is null
    for system actions.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=True, index=True)
    target_user_id = Column(String(255), nullable=True, index=True)
    action = Column(
        Enum(AuditAction, name="action_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    resource = Column(String(100), nullable=False)
    resource_id = Column(String(255), nullable=True)
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
