"""Audit service — append-only audit trail for privileged mutations."""

import json
from typing import Optional, Any
from sqlalchemy.orm import Session

from directory_backend.models.audit_log import AuditLog, AuditAction
from directory_backend.schemas.schemas import RequestMetadata


class AuditService:
    """Records immutable audit log entries for admin actions."""

    @staticmethod
    def log(
        db: Session,
        action: AuditAction,
        resource: str,
        user_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        resource_id: Optional[str] = None,
        details: Optional[Any] = None,
        metadata: Optional[RequestMetadata] = None,
    ) -> AuditLog:
        """Write a single audit log record.

        Args:
            action: one of AuditAction; events outside the enum go in
                ``details`` as ``{"event": ...}``.
            user_id: the acting principal, or None for system actions.

        This method commits immediately to ensure audit is never lost.
        """
        entry = AuditLog(
            user_id=user_id,
            target_user_id=target_user_id,
            action=AuditAction(action),
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=json.dumps(details, default=str) if details is not None else None,
            ip_address=metadata.ip_address if metadata else None,
            user_agent=metadata.user_agent if metadata else None,
        )
        db.add(entry)
        db.commit()
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        user_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        action: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Query audit logs with filters and pagination, newest first."""
        query = db.query(AuditLog)

        if user_id:
            query = query.filter(AuditLog.user_id == user_id)
        if target_user_id:
            query = query.filter(AuditLog.target_user_id == target_user_id)
        if action:
            query = query.filter(AuditLog.action == AuditAction(action))

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

        return {
            "logs": logs,
            "total": total,
            "page": page,
            "page_size": page_size,
        }


audit_service = AuditService()
