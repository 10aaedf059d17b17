"""Permission audit — compares catalog-declared grants with persisted grants.

Read-only. Inconsistency is the output of this service, never its failure
mode; only infrastructure errors propagate.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from directory_backend.core.permissions import declared_permissions, is_known_role, parse_permission
from directory_backend.models.role import Role, Permission, RolePermission, UserRole
from directory_backend.models.user import User
from directory_backend.schemas.schemas import (
    PermissionAuditReport,
    PermissionAuditSummary,
    RolePermissionDrift,
    UserPermissionDrift,
)

logger = logging.getLogger(__name__)


def unique_sorted(values: Iterable[str]) -> List[str]:
    return sorted(set(values))


@dataclass
class _UserEntry:
    email: Optional[str] = None
    roles: Set[str] = field(default_factory=set)
    grants_by_role: Dict[str, Set[str]] = field(default_factory=lambda: defaultdict(set))


class PermissionAuditService:
    """Builds a PermissionAuditReport from the current database state."""

    def __init__(self, db: Session):
        self.db = db

    def _assigned_roles(self):
        return (
            self.db.query(UserRole.user_id, User.email, Role.name)
            .join(Role, UserRole.role_id == Role.id)
            .outerjoin(User, User.id == UserRole.user_id)
            .all()
        )

    def _assigned_permissions(self):
        return (
            self.db.query(UserRole.user_id, Role.name, Permission.name)
            .join(Role, UserRole.role_id == Role.id)
            .join(RolePermission, RolePermission.role_id == UserRole.role_id)
            .join(Permission, RolePermission.permission_id == Permission.id)
            .all()
        )

    def _role_permissions(self):
        return (
            self.db.query(Role.name, Permission.name)
            .outerjoin(RolePermission, RolePermission.role_id == Role.id)
            .outerjoin(Permission, RolePermission.permission_id == Permission.id)
            .all()
        )

    def _user_drift(
        self, unknown_roles: Set[str], unknown_permissions: Set[str]
    ) -> Tuple[int, List[UserPermissionDrift]]:
        users: Dict[str, _UserEntry] = {}
        for user_id, email, role_name in self._assigned_roles():
            entry = users.setdefault(user_id, _UserEntry(email=email))
            entry.roles.add(role_name)

        for user_id, role_name, permission_name in self._assigned_permissions():
            entry = users.get(user_id)
            if entry is None:
                continue
            if parse_permission(permission_name) is None:
                unknown_permissions.add(permission_name)
            entry.grants_by_role[role_name].add(permission_name)

        drift: List[UserPermissionDrift] = []
        for user_id, entry in users.items():
            expected: Set[str] = set()
            actual: Set[str] = set()
            # Grants that arrive through at least one known role.
            reportable: Set[str] = set()
            for role in entry.roles:
                grants = entry.grants_by_role.get(role, set())
                actual |= grants
                if not is_known_role(role):
                    unknown_roles.add(role)
                    continue
                expected |= declared_permissions(role)
                reportable |= grants

            missing = unique_sorted(expected - actual)
            extra = unique_sorted(reportable - expected)
            if not missing and not extra:
                continue

            drift.append(
                UserPermissionDrift(
                    user_id=user_id,
                    email=entry.email,
                    roles=unique_sorted(entry.roles),
                    expected_permissions=unique_sorted(expected),
                    actual_permissions=unique_sorted(actual),
                    missing_permissions=missing,
                    extra_permissions=extra,
                )
            )

        drift.sort(key=lambda item: item.user_id)
        return len(users), drift

    def _role_drift(
        self, unknown_roles: Set[str], unknown_permissions: Set[str]
    ) -> Tuple[int, List[RolePermissionDrift]]:
        role_to_permissions: Dict[str, Set[str]] = {}
        for role_name, permission_name in self._role_permissions():
            current = role_to_permissions.setdefault(role_name, set())
            if permission_name:
                if parse_permission(permission_name) is None:
                    unknown_permissions.add(permission_name)
                current.add(permission_name)

        drift: List[RolePermissionDrift] = []
        for role_name in sorted(role_to_permissions):
            if not is_known_role(role_name):
                unknown_roles.add(role_name)
                continue

            actual = role_to_permissions[role_name]
            expected = set(declared_permissions(role_name))
            missing = unique_sorted(expected - actual)
            extra = unique_sorted(actual - expected)
            if not missing and not extra:
                continue

            drift.append(
                RolePermissionDrift(
                    role=role_name,
                    expected_permissions=unique_sorted(expected),
                    actual_permissions=unique_sorted(actual),
                    missing_permissions=missing,
                    extra_permissions=extra,
                )
            )
        return len(role_to_permissions), drift

    def generate_report(self) -> PermissionAuditReport:
        unknown_roles: Set[str] = set()
        unknown_permissions: Set[str] = set()
        users_scanned, user_drift = self._user_drift(unknown_roles, unknown_permissions)
        roles_scanned, role_drift = self._role_drift(unknown_roles, unknown_permissions)
        for name in sorted(unknown_permissions):
            logger.warning("Persisted permission %r is not in the catalog", name)

        report = PermissionAuditReport(
            generated_at=datetime.now(timezone.utc),
            summary=PermissionAuditSummary(
                users_scanned=users_scanned,
                users_with_drift=len(user_drift),
                roles_scanned=roles_scanned,
                roles_with_drift=len(role_drift),
                unknown_roles=unique_sorted(unknown_roles),
                unknown_permissions=unique_sorted(unknown_permissions),
            ),
            user_drift=user_drift,
            role_drift=role_drift,
        )
        logger.info(
            "Permission audit: %d/%d users and %d/%d roles with drift",
            report.summary.users_with_drift, users_scanned,
            report.summary.roles_with_drift, roles_scanned,
        )
        return report
