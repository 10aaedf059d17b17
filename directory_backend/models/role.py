"""RBAC models: roles, permissions, and the edges between them and users."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index, func

from directory_backend.db.base import Base


class Role(Base):
    """Named policy group. Declared permissions live in the catalog."""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)


class Permission(Base):
    """A ``<resource>.<action>`` capability row."""
    __tablename__ = "permissions"
    __table_args__ = (
        Index("permissions_resource_action_idx", "resource", "action"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    resource = Column(String(50), nullable=False)
    action = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)


class RolePermission(Base):
    """Actual grant edge. May drift from the catalog declaration."""
    __tablename__ = "role_permissions"

    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    permission_id = Column(
        Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    )


class UserRole(Base):
    """Assignment of a role to a user id from the external auth provider."""
    __tablename__ = "user_roles"

    user_id = Column(String(255), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)
    assigned_by = Column(String(255), nullable=True)
