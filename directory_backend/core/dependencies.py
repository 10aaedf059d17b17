"""FastAPI dependencies wiring the admin gate into request handlers."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from directory_backend.core.permissions import Permission
from directory_backend.core.security import JWTSessionProvider, SessionProvider
from directory_backend.db.session import get_db
from directory_backend.schemas.schemas import AdminContext
from directory_backend.services.admin_gate import AdminGate
from directory_backend.services.rate_limit_service import build_rate_limiter


@lru_cache
def get_session_provider() -> SessionProvider:
    return JWTSessionProvider()


@lru_cache
def get_admin_gate() -> AdminGate:
    """Process-wide gate. Override with ``app.dependency_overrides`` in tests."""
    return AdminGate(get_session_provider(), build_rate_limiter())


class RequireAdminPermission:
    """Dependency that runs the admin gate, optionally requiring a permission."""

    def __init__(self, permission: Optional[Permission] = None):
        self.permission = permission

    async def __call__(
        self,
        request: Request,
        db: Session = Depends(get_db),
        gate: AdminGate = Depends(get_admin_gate),
    ) -> AdminContext:
        return gate.require(request.headers, db, self.permission)


# Convenience dependency factories
require_admin_session = RequireAdminPermission()
require_roles_view = RequireAdminPermission(Permission.ROLES_VIEW)
require_roles_assign = RequireAdminPermission(Permission.ROLES_ASSIGN)
require_roles_revoke = RequireAdminPermission(Permission.ROLES_REVOKE)
require_users_update = RequireAdminPermission(Permission.USERS_UPDATE)
require_audit_logs_view = RequireAdminPermission(Permission.AUDIT_LOGS_VIEW)
