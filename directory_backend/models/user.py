"""User model."""

from sqlalchemy import Column, String, DateTime, func

from directory_backend.db.base import Base


class User(Base):
    """Local mirror of an account owned by the external auth provider."""
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
