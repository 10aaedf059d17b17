"""Models package — import all models so metadata.create_all can discover them."""

from directory_backend.models.role import Role, Permission, RolePermission, UserRole
from directory_backend.models.user import User
from directory_backend.models.audit_log import AuditLog, AuditAction

__all__ = [
    "Role", "Permission", "RolePermission", "UserRole",
    "User", "AuditLog", "AuditAction",
]
