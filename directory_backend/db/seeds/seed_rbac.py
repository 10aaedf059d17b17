"""Seed catalog permissions, roles and their links into the database."""

from typing import Dict, Optional

from sqlalchemy.orm import Session

from directory_backend.core.permissions import (
    ROLE_PERMISSIONS,
    RoleName,
    all_permissions,
    split_permission_name,
)
from directory_backend.models.role import Role, Permission, RolePermission
from directory_backend.models.user import User
from directory_backend.services.rbac_service import RBACService


def ensure_permission(db: Session, name: str) -> Permission:
    """Insert the permission row if it doesn't already exist."""
    existing = db.query(Permission).filter(Permission.name == name).first()
    if existing:
        return existing
    resource, action = split_permission_name(name)
    permission = Permission(
        name=name,
        resource=resource,
        action=action,
        description=f"{resource} {action} permission",
    )
    db.add(permission)
    db.flush()
    return permission


def ensure_role(db: Session, name: str) -> Role:
    existing = db.query(Role).filter(Role.name == name).first()
    if existing:
        return existing
    role = Role(name=name, description=f"{name} role")
    db.add(role)
    db.flush()
    return role


def ensure_role_permission(db: Session, role_id: int, permission_id: int) -> None:
    existing = db.get(RolePermission, (role_id, permission_id))
    if not existing:
        db.add(RolePermission(role_id=role_id, permission_id=permission_id))
        db.flush()


def seed_rbac(db: Session) -> Dict[str, int]:
    """Upsert every catalog permission and role and link them. Idempotent."""
    permission_ids: Dict[str, int] = {}
    for name in sorted(all_permissions()):
        permission_ids[name] = ensure_permission(db, name).id

    for role_name, permissions in ROLE_PERMISSIONS.items():
        role = ensure_role(db, role_name.value)
        for permission in permissions:
            ensure_role_permission(db, role.id, permission_ids[permission.value])

    db.commit()
    print(f"✅ Seeded {len(permission_ids)} permissions and {len(ROLE_PERMISSIONS)} roles")
    return permission_ids


def seed_super_admin(db: Session, email: Optional[str]) -> bool:
    """Ensure the user with ``email`` holds super_admin. Returns True if ensured."""
    if not email:
        return False

    user = db.query(User).filter(User.email == email).first()
    if not user:
        print(f"⚠️  Admin user not found for email '{email}'.")
        print("Create the user account first, then rerun this seed.")
        return False

    rbac = RBACService(db)
    role_id = rbac.get_role_id_by_name(RoleName.SUPER_ADMIN)
    if role_id is None:
        raise RuntimeError("Missing super_admin role after seeding.")

    rbac.assign_role_if_missing(user.id, role_id, assigned_by=user.id)
    print(f"✅ Ensured super_admin role assignment for {email}")
    return True
