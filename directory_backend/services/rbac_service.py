"""RBAC service — resolves roles and effective permissions from persisted state.

Effective permissions are joined through ``role_permissions``; the catalog in
``core.permissions`` is never consulted here, which is what keeps policy drift
observable by the permission audit.
"""

import logging
from typing import Iterable, Optional, Set

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from directory_backend.core.exceptions import RoleNotFound, ReservedRoleError
from directory_backend.core.permissions import (
    ADMIN_ROLES,
    RESERVED_ROLE_NAMES,
    RoleName,
    enum_value,
)
from directory_backend.models.role import Role, Permission, RolePermission, UserRole

logger = logging.getLogger(__name__)


class RBACService:
    """Role and permission queries for a single database session."""

    def __init__(self, db: Session):
        self.db = db

    # --- Reads: never raise for missing data ---
    def get_user_roles(self, user_id: str) -> Set[str]:
        rows = (
            self.db.query(Role.name)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(UserRole.user_id == user_id)
            .all()
        )
        return {name for (name,) in rows}

    def get_user_permissions(self, user_id: str) -> Set[str]:
        rows = (
            self.db.query(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(UserRole, UserRole.role_id == RolePermission.role_id)
            .filter(UserRole.user_id == user_id)
            .all()
        )
        return {name for (name,) in rows}

    def has_permission(self, user_id: str, permission) -> bool:
        return enum_value(permission) in self.get_user_permissions(user_id)

    def has_any_permission(self, user_id: str, permissions: Iterable) -> bool:
        granted = self.get_user_permissions(user_id)
        return any(enum_value(p) in granted for p in permissions)

    def has_all_permissions(self, user_id: str, permissions: Iterable) -> bool:
        granted = self.get_user_permissions(user_id)
        return all(enum_value(p) in granted for p in permissions)

    def is_admin(self, user_id: str) -> bool:
        return bool(self.get_user_roles(user_id) & ADMIN_ROLES)

    def is_super_admin(self, user_id: str) -> bool:
        return RoleName.SUPER_ADMIN.value in self.get_user_roles(user_id)

    def get_role_id_by_name(self, role_name: str) -> Optional[int]:
        row = self.db.query(Role.id).filter(Role.name == enum_value(role_name)).first()
        return row[0] if row else None

    # --- Writes ---
    def _assignable_role(self, role_id: int) -> Role:
        role = self.db.get(Role, role_id)
        if role is None:
            raise RoleNotFound(str(role_id))
        if role.name in RESERVED_ROLE_NAMES:
            raise ReservedRoleError(f"Role '{role.name}' is managed by the organization provider")
        return role

    def _insert_assignment(self, user_id: str, role_id: int, assigned_by: Optional[str]) -> None:
        self.db.add(UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by))
        self.db.flush()

    def assign_role_if_missing(self, user_id: str, role_id: int, assigned_by: Optional[str]) -> bool:
        """Insert the (user, role) edge unless it already exists.

        Returns True when a row was inserted. Does not write an audit entry;
        callers that need a trail log it themselves.
        """
        self._assignable_role(role_id)
        existing = (
            self.db.query(UserRole)
            .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
            .first()
        )
        if existing is not None:
            return False

        try:
            self._insert_assignment(user_id, role_id, assigned_by)
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the same edge first.
            self.db.rollback()
            logger.debug("Role %s already assigned to %s", role_id, user_id)
            return False
        logger.info("Assigned role %s to user %s (by %s)", role_id, user_id, assigned_by)
        return True

    def remove_role(self, user_id: str, role_id: int) -> bool:
        """Delete one assignment edge. Returns False when there was none."""
        deleted = (
            self.db.query(UserRole)
            .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.info("Removed role %s from user %s", role_id, user_id)
        return bool(deleted)

    def set_user_primary_role_by_name(
        self, user_id: str, role_name: str, assigned_by: Optional[str]
    ) -> None:
        """Replace every role assignment of ``user_id`` with ``role_name``.

        The delete and the insert commit together or not at all.

        Raises:
            RoleNotFound: If ``role_name`` was never seeded.
        """
        role_id = self.get_role_id_by_name(role_name)
        if role_id is None:
            raise RoleNotFound(enum_value(role_name))
        self._assignable_role(role_id)

        try:
            self.db.query(UserRole).filter(UserRole.user_id == user_id).delete(
                synchronize_session=False
            )
            self._insert_assignment(user_id, role_id, assigned_by)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Primary role replacement failed for user %s", user_id)
            raise
        logger.info("Set primary role of %s to %s (by %s)", user_id, enum_value(role_name), assigned_by)
