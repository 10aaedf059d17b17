"""Permission catalog: the policy source of truth for roles and permissions.

Persisted role/permission rows are seeded from this table. The permission
audit compares what the database actually grants against what is declared
here, so nothing in the request path reads ``ROLE_PERMISSIONS`` directly.
"""

from enum import Enum
from typing import Optional, Tuple, FrozenSet, Dict


class Permission(str, Enum):
    """Every capability the admin back-office knows about."""

    USERS_VIEW = "users.view"
    USERS_CREATE = "users.create"
    USERS_UPDATE = "users.update"
    USERS_DELETE = "users.delete"
    USERS_SUSPEND = "users.suspend"
    USERS_BAN = "users.ban"

    INVESTORS_VERIFY = "investors.verify"
    INVESTORS_REJECT = "investors.reject"

    REPORTS_VIEW = "reports.view"
    REPORTS_REVIEW = "reports.review"
    REPORTS_RESOLVE = "reports.resolve"

    ANALYTICS_VIEW = "analytics.view"
    ANALYTICS_EXPORT = "analytics.export"

    ROLES_VIEW = "roles.view"
    ROLES_ASSIGN = "roles.assign"
    ROLES_REVOKE = "roles.revoke"

    SYSTEM_SETTINGS = "system.settings"
    AUDIT_LOGS_VIEW = "audit_logs.view"


class RoleName(str, Enum):
    """Roles declared by policy."""

    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    MODERATOR = "moderator"
    FOUNDER = "founder"
    INVESTOR = "investor"
    TALENT = "talent"


ROLE_PERMISSIONS: Dict[RoleName, Tuple[Permission, ...]] = {
    RoleName.SUPER_ADMIN: tuple(Permission),
    RoleName.ADMIN: (
        Permission.USERS_VIEW,
        Permission.USERS_UPDATE,
        Permission.USERS_SUSPEND,
        Permission.INVESTORS_VERIFY,
        Permission.INVESTORS_REJECT,
        Permission.REPORTS_VIEW,
        Permission.REPORTS_REVIEW,
        Permission.REPORTS_RESOLVE,
        Permission.ANALYTICS_VIEW,
        Permission.AUDIT_LOGS_VIEW,
    ),
    RoleName.MODERATOR: (
        Permission.USERS_VIEW,
        Permission.REPORTS_VIEW,
        Permission.REPORTS_REVIEW,
        Permission.REPORTS_RESOLVE,
    ),
    RoleName.FOUNDER: (),
    RoleName.INVESTOR: (),
    RoleName.TALENT: (),
}

ADMIN_ROLES: FrozenSet[str] = frozenset({RoleName.ADMIN.value, RoleName.SUPER_ADMIN.value})

# Organization roles owned by the external auth provider. Never granted here.
RESERVED_ROLE_NAMES: FrozenSet[str] = frozenset({"owner"})

_DECLARED: Dict[str, FrozenSet[str]] = {
    role.value: frozenset(p.value for p in perms) for role, perms in ROLE_PERMISSIONS.items()
}


def enum_value(value) -> str:
    return value.value if isinstance(value, Enum) else value


def all_permissions() -> FrozenSet[str]:
    """Union of every permission declared for any role."""
    return frozenset(p.value for p in Permission)


def declared_permissions(role: str) -> FrozenSet[str]:
    """Policy-expected permissions for ``role``; empty when none or unknown."""
    return _DECLARED.get(enum_value(role), frozenset())


def is_known_role(role: str) -> bool:
    return enum_value(role) in _DECLARED


def parse_permission(name: str) -> Optional[Permission]:
    """Re-validate a persisted permission string against the enumeration."""
    try:
        return Permission(name)
    except ValueError:
        return None


def split_permission_name(name: str) -> Tuple[str, str]:
    """``"users.suspend"`` -> ``("users", "suspend")``."""
    resource, _, action = enum_value(name).partition(".")
    return resource, action
