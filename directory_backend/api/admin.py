"""Admin back-office API router: roles, impersonation, permission audit, audit logs."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from directory_backend.db.session import get_db
from directory_backend.core.dependencies import (
    get_admin_gate,
    get_session_provider,
    require_audit_logs_view,
    require_roles_assign,
    require_roles_revoke,
    require_roles_view,
    require_users_update,
)
from directory_backend.core.exceptions import BadRequest, RoleNotFound, Unauthorized
from directory_backend.core.security import SessionProvider
from directory_backend.models.audit_log import AuditAction
from directory_backend.schemas.schemas import (
    AdminContext,
    AdminSessionOut,
    AuditLogOut,
    AuditLogPage,
    MessageResponse,
    PermissionAuditReport,
    RoleAssignRequest,
    UserRolesOut,
)
from directory_backend.services.admin_gate import AdminGate
from directory_backend.services.audit_service import audit_service
from directory_backend.services.permission_audit_service import PermissionAuditService
from directory_backend.services.rbac_service import RBACService

router = APIRouter(prefix="/admin", tags=["admin"])


def _reject_self(ctx: AdminContext, user_id: str, action: str) -> None:
    if ctx.user.id == user_id:
        raise BadRequest(f"You cannot {action} your own account")


@router.get("/session", response_model=AdminSessionOut)
async def get_admin_session(
    request: Request,
    db: Session = Depends(get_db),
    gate: AdminGate = Depends(get_admin_gate),
):
    """Session check for the admin UI. Signed-out callers get ``authenticated: false``."""
    try:
        ctx = gate.require(request.headers, db)
    except Unauthorized:
        return AdminSessionOut(authenticated=False)
    return AdminSessionOut(
        authenticated=True,
        is_admin=RBACService(db).is_admin(ctx.user.id),
        user=ctx.user,
    )


@router.get("/users/{user_id}/roles", response_model=UserRolesOut)
async def get_user_roles(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_roles_view),
):
    """List a user's roles and effective permissions."""
    rbac = RBACService(db)
    return UserRolesOut(
        user_id=user_id,
        roles=sorted(rbac.get_user_roles(user_id)),
        permissions=sorted(rbac.get_user_permissions(user_id)),
    )


@router.post("/users/{user_id}/roles", response_model=MessageResponse, status_code=201)
async def assign_user_role(
    user_id: str,
    body: RoleAssignRequest,
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_roles_assign),
):
    """Add a role to a user, keeping any roles they already hold."""
    rbac = RBACService(db)
    role_id = rbac.get_role_id_by_name(body.role_name)
    if role_id is None:
        raise RoleNotFound(body.role_name)

    inserted = rbac.assign_role_if_missing(user_id, role_id, assigned_by=ctx.user.id)
    if inserted:
        audit_service.log(
            db,
            action=AuditAction.ROLE_ASSIGNED,
            resource="user_roles",
            user_id=ctx.user.id,
            target_user_id=user_id,
            resource_id=user_id,
            details={"role": body.role_name},
            metadata=ctx.metadata,
        )
        return MessageResponse(message="Role assigned")
    return MessageResponse(message="Role already assigned")


@router.put("/users/{user_id}/primary-role", response_model=MessageResponse)
async def set_user_primary_role(
    user_id: str,
    body: RoleAssignRequest,
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_roles_assign),
):
    """Replace all of a user's roles with a single role."""
    _reject_self(ctx, user_id, "replace the roles of")
    rbac = RBACService(db)
    previous = sorted(rbac.get_user_roles(user_id))
    rbac.set_user_primary_role_by_name(user_id, body.role_name, assigned_by=ctx.user.id)
    audit_service.log(
        db,
        action=AuditAction.ROLE_ASSIGNED,
        resource="user_roles",
        user_id=ctx.user.id,
        target_user_id=user_id,
        resource_id=user_id,
        details={"role": body.role_name, "previous_roles": previous, "primary": True},
        metadata=ctx.metadata,
    )
    return MessageResponse(message="Primary role set")


@router.delete("/users/{user_id}/roles/{role_name}", response_model=MessageResponse)
async def revoke_user_role(
    user_id: str,
    role_name: str,
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_roles_revoke),
):
    """Remove one role from a user."""
    _reject_self(ctx, user_id, "revoke roles from")
    rbac = RBACService(db)
    role_id = rbac.get_role_id_by_name(role_name)
    if role_id is None:
        raise RoleNotFound(role_name)

    if not rbac.remove_role(user_id, role_id):
        return MessageResponse(message="Role was not assigned")
    audit_service.log(
        db,
        action=AuditAction.ROLE_REVOKED,
        resource="user_roles",
        user_id=ctx.user.id,
        target_user_id=user_id,
        resource_id=user_id,
        details={"role": role_name},
        metadata=ctx.metadata,
    )
    return MessageResponse(message="Role revoked")


@router.post("/users/{user_id}/impersonate")
async def impersonate_user(
    user_id: str,
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_users_update),
    provider: SessionProvider = Depends(get_session_provider),
):
    """Start an impersonation session for ``user_id``."""
    _reject_self(ctx, user_id, "impersonate")
    token = provider.impersonate(ctx.user.id, user_id)
    audit_service.log(
        db,
        action=AuditAction.USER_IMPERSONATED,
        resource="users",
        user_id=ctx.user.id,
        target_user_id=user_id,
        resource_id=user_id,
        details={"event": "impersonate_user"},
        metadata=ctx.metadata,
    )
    return {"session_token": token, "user_id": user_id}


@router.get("/permission-audit/report", response_model=PermissionAuditReport)
async def get_permission_audit_report(
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_audit_logs_view),
):
    """Generate the permission drift report and record that it was viewed."""
    report = PermissionAuditService(db).generate_report()
    audit_service.log(
        db,
        action=AuditAction.PERMISSION_AUDIT_VIEWED,
        resource="permission_audit",
        user_id=ctx.user.id,
        details={
            "users_with_drift": report.summary.users_with_drift,
            "roles_with_drift": report.summary.roles_with_drift,
        },
        metadata=ctx.metadata,
    )
    return report


@router.get("/audit-logs", response_model=AuditLogPage)
async def get_audit_logs(
    user_id: Optional[str] = Query(None),
    target_user_id: Optional[str] = Query(None),
    action: Optional[AuditAction] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    ctx: AdminContext = Depends(require_audit_logs_view),
):
    """Query audit logs."""
    result = audit_service.query_logs(db, user_id, target_user_id, action, page, page_size)
    return AuditLogPage(
        logs=[AuditLogOut.model_validate(log) for log in result["logs"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )
