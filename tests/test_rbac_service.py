"""RBAC service tests against an in-memory database."""

import pytest
from sqlalchemy.exc import OperationalError

from directory_backend.core.exceptions import RoleNotFound, ReservedRoleError
from directory_backend.core.permissions import Permission
from directory_backend.models.role import Role, UserRole
from directory_backend.services.rbac_service import RBACService

from conftest import add_user, grant_role, link, role_id, unlink


def test_unknown_user_has_no_roles_or_permissions(seeded_db):
    rbac = RBACService(seeded_db)
    assert rbac.get_user_roles("nobody") == set()
    assert rbac.get_user_permissions("nobody") == set()
    assert rbac.has_permission("nobody", Permission.USERS_VIEW) is False
    assert rbac.is_admin("nobody") is False


def test_assign_role_if_missing_is_idempotent(seeded_db):
    rbac = RBACService(seeded_db)
    admin_id = role_id(seeded_db, "admin")

    assert rbac.assign_role_if_missing("u1", admin_id, assigned_by="root") is True
    assert rbac.assign_role_if_missing("u1", admin_id, assigned_by="root") is False

    edges = seeded_db.query(UserRole).filter(UserRole.user_id == "u1").all()
    assert len(edges) == 1
    assert edges[0].assigned_by == "root"


def test_assign_unknown_role_id_raises(seeded_db):
    with pytest.raises(RoleNotFound):
        RBACService(seeded_db).assign_role_if_missing("u1", 9999, assigned_by="root")


def test_reserved_owner_role_is_never_assigned(seeded_db):
    seeded_db.add(Role(name="owner", description="org owner"))
    seeded_db.commit()
    rbac = RBACService(seeded_db)

    with pytest.raises(ReservedRoleError):
        rbac.assign_role_if_missing("u1", role_id(seeded_db, "owner"), assigned_by="root")
    with pytest.raises(ReservedRoleError):
        rbac.set_user_primary_role_by_name("u1", "owner", assigned_by="root")
    assert rbac.get_user_roles("u1") == set()


def test_permissions_are_union_of_roles_from_the_store(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    grant_role(seeded_db, "u1", "talent")
    # talent declares nothing, but the store grants it analytics.export
    link(seeded_db, "talent", "analytics.export")

    permissions = RBACService(seeded_db).get_user_permissions("u1")
    assert permissions == {
        "users.view", "reports.view", "reports.review", "reports.resolve", "analytics.export",
    }


def test_permissions_follow_store_not_catalog(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    unlink(seeded_db, "moderator", "reports.resolve")

    rbac = RBACService(seeded_db)
    assert not rbac.has_permission("u1", Permission.REPORTS_RESOLVE)
    assert rbac.has_permission("u1", "reports.view")


def test_any_and_all_permission_checks(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    rbac = RBACService(seeded_db)

    assert rbac.has_any_permission("u1", [Permission.USERS_BAN, Permission.REPORTS_VIEW])
    assert not rbac.has_any_permission("u1", [Permission.USERS_BAN, Permission.SYSTEM_SETTINGS])
    assert rbac.has_all_permissions("u1", [Permission.USERS_VIEW, Permission.REPORTS_REVIEW])
    assert not rbac.has_all_permissions("u1", [Permission.USERS_VIEW, Permission.USERS_BAN])


def test_admin_and_super_admin_flags(seeded_db):
    grant_role(seeded_db, "a", "admin")
    grant_role(seeded_db, "s", "super_admin")
    grant_role(seeded_db, "m", "moderator")
    rbac = RBACService(seeded_db)

    assert rbac.is_admin("a") and not rbac.is_super_admin("a")
    assert rbac.is_admin("s") and rbac.is_super_admin("s")
    assert not rbac.is_admin("m")


def test_get_role_id_by_name(seeded_db):
    rbac = RBACService(seeded_db)
    assert rbac.get_role_id_by_name("admin") == role_id(seeded_db, "admin")
    assert rbac.get_role_id_by_name("does_not_exist") is None


def test_set_primary_role_replaces_all_assignments(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    grant_role(seeded_db, "u1", "talent")
    rbac = RBACService(seeded_db)

    rbac.set_user_primary_role_by_name("u1", "investor", assigned_by="root")

    assert rbac.get_user_roles("u1") == {"investor"}


def test_set_primary_role_unknown_name_raises_and_keeps_roles(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    rbac = RBACService(seeded_db)

    with pytest.raises(RoleNotFound):
        rbac.set_user_primary_role_by_name("u1", "wizard", assigned_by="root")
    assert rbac.get_user_roles("u1") == {"moderator"}


def test_set_primary_role_insert_failure_rolls_back_delete(seeded_db, session_factory, monkeypatch):
    grant_role(seeded_db, "u1", "moderator")
    grant_role(seeded_db, "u1", "talent")
    rbac = RBACService(seeded_db)
    before = rbac.get_user_roles("u1")

    def failing_insert(user_id, role_id, assigned_by):
        raise OperationalError("INSERT INTO user_roles", {}, Exception("disk I/O error"))

    monkeypatch.setattr(rbac, "_insert_assignment", failing_insert)
    with pytest.raises(OperationalError):
        rbac.set_user_primary_role_by_name("u1", "admin", assigned_by="root")

    reader = session_factory()
    try:
        assert RBACService(reader).get_user_roles("u1") == before
    finally:
        reader.close()
    assert rbac.get_user_roles("u1") == before


def test_concurrent_duplicate_assignment_counts_as_already_assigned(seeded_db, session_factory, monkeypatch):
    rbac = RBACService(seeded_db)
    admin_id = role_id(seeded_db, "admin")
    insert = rbac._insert_assignment

    def racing_insert(user_id, role_id, assigned_by):
        other = session_factory()
        try:
            other.add(UserRole(user_id=user_id, role_id=role_id, assigned_by="other-request"))
            other.commit()
        finally:
            other.close()
        insert(user_id, role_id, assigned_by)

    monkeypatch.setattr(rbac, "_insert_assignment", racing_insert)
    assert rbac.assign_role_if_missing("u1", admin_id, assigned_by="root") is False

    edges = seeded_db.query(UserRole).filter(UserRole.user_id == "u1").all()
    assert len(edges) == 1
    assert edges[0].assigned_by == "other-request"


def test_remove_role(seeded_db):
    grant_role(seeded_db, "u1", "moderator")
    rbac = RBACService(seeded_db)
    moderator = role_id(seeded_db, "moderator")

    assert rbac.remove_role("u1", moderator) is True
    assert rbac.remove_role("u1", moderator) is False
    assert rbac.get_user_roles("u1") == set()


def test_assignment_does_not_require_local_user_row(seeded_db):
    add_user(seeded_db, "u2")
    rbac = RBACService(seeded_db)
    rbac.assign_role_if_missing("u2", role_id(seeded_db, "founder"), assigned_by="u2")
    rbac.assign_role_if_missing("external-only", role_id(seeded_db, "founder"), assigned_by=None)
    assert rbac.get_user_roles("u2") == {"founder"}
    assert rbac.get_user_roles("external-only") == {"founder"}
