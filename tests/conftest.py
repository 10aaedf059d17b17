"""Shared fixtures: in-memory database, fake session provider, controllable clock."""

from typing import Mapping, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import directory_backend.models  # noqa: F401
from directory_backend.db.base import Base
from directory_backend.db.seeds.seed_rbac import seed_rbac
from directory_backend.models.role import Role, Permission, RolePermission, UserRole
from directory_backend.models.user import User
from directory_backend.schemas.schemas import SessionUser
from directory_backend.services.admin_gate import AdminGate
from directory_backend.services.rate_limit_service import InMemoryRateLimiter


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSessionProvider:
    """Treats ``Authorization: Bearer <user_id>`` as a valid session for that user."""

    def __init__(self):
        self.calls = 0
        self.impersonations = []

    def get_session(self, headers: Mapping[str, str]) -> Optional[SessionUser]:
        self.calls += 1
        auth = headers.get("authorization", "")
        if not auth.startswith("Bearer "):
            return None
        user_id = auth[len("Bearer "):]
        return SessionUser(id=user_id, email=f"{user_id}@example.com")

    def invalidate(self, user_id: str) -> None:
        pass

    def impersonate(self, actor_id: str, target_user_id: str) -> str:
        self.impersonations.append((actor_id, target_user_id))
        return f"impersonation:{target_user_id}"


def auth_headers(user_id: str, **extra: str) -> dict:
    headers = {"authorization": f"Bearer {user_id}"}
    headers.update({k.replace("_", "-"): v for k, v in extra.items()})
    return headers


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded_db(db):
    seed_rbac(db)
    return db


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(clock):
    return InMemoryRateLimiter(max_requests=120, window_seconds=60, clock=clock)


@pytest.fixture
def session_provider():
    return FakeSessionProvider()


@pytest.fixture
def gate(session_provider, rate_limiter):
    return AdminGate(session_provider, rate_limiter)


# --- data helpers ---
def add_user(db, user_id: str, email: Optional[str] = None) -> User:
    user = User(id=user_id, email=email or f"{user_id}@example.com", name=user_id)
    db.add(user)
    db.commit()
    return user


def role_id(db, name: str) -> int:
    return db.query(Role.id).filter(Role.name == name).scalar()


def permission_id(db, name: str) -> int:
    return db.query(Permission.id).filter(Permission.name == name).scalar()


def grant_role(db, user_id: str, role_name: str) -> None:
    db.add(UserRole(user_id=user_id, role_id=role_id(db, role_name), assigned_by="test"))
    db.commit()


def link(db, role_name: str, permission_name: str) -> None:
    db.add(RolePermission(role_id=role_id(db, role_name), permission_id=permission_id(db, permission_name)))
    db.commit()


def unlink(db, role_name: str, permission_name: str) -> None:
    (
        db.query(RolePermission)
        .filter(
            RolePermission.role_id == role_id(db, role_name),
            RolePermission.permission_id == permission_id(db, permission_name),
        )
        .delete(synchronize_session=False)
    )
    db.commit()
