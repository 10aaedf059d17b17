"""Session provider boundary.

Sessions, cookies and impersonation state belong to the external auth
provider. The admin core only needs ``get_session`` to yield a principal;
everything else is delegated.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Mapping, Protocol, Tuple

from jose import JWTError, jwt

from directory_backend.core.config import settings
from directory_backend.schemas.schemas import SessionUser

logger = logging.getLogger(__name__)


class SessionProvider(Protocol):
    """Interface the admin gate expects from the auth provider."""

    def get_session(self, headers: Mapping[str, str]) -> Optional[SessionUser]:
        ...

    def invalidate(self, user_id: str) -> None:
        ...

    def impersonate(self, actor_id: str, target_user_id: str) -> str:
        ...


def split_role_field(value: Optional[str]) -> Tuple[str, ...]:
    """Translate the provider's flat ``role`` claim ("admin,member") into a tuple.

    Only used at this boundary; authorization reads the ``user_roles`` table.
    """
    if not value:
        return ()
    return tuple(part.strip() for part in value.split(",") if part.strip())


def create_session_token(
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Mint a provider-compatible bearer token (local development and tests)."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(hours=1))
    to_encode = {"sub": user_id, "email": email, "name": name, "exp": expire}
    if role:
        to_encode["role"] = role
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class JWTSessionProvider:
    """Reads bearer session tokens issued by the auth provider."""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self.secret = secret or settings.JWT_SECRET
        self.algorithm = algorithm or settings.JWT_ALGORITHM
        self._revoked: set[str] = set()

    def _bearer_token(self, headers: Mapping[str, str]) -> Optional[str]:
        auth_header = headers.get("authorization") or headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return None
        return auth_header[len("Bearer "):].strip() or None

    def get_session(self, headers: Mapping[str, str]) -> Optional[SessionUser]:
        token = self._bearer_token(headers)
        if token is None:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            logger.debug("Rejected session token")
            return None

        user_id = payload.get("sub")
        if not user_id or user_id in self._revoked:
            return None
        return SessionUser(
            id=str(user_id),
            email=payload.get("email"),
            name=payload.get("name"),
            external_roles=split_role_field(payload.get("role")),
        )

    def invalidate(self, user_id: str) -> None:
        self._revoked.add(user_id)

    def impersonate(self, actor_id: str, target_user_id: str) -> str:
        """Issue a short-lived session for the target, recording the actor."""
        expire = datetime.now(timezone.utc) + timedelta(minutes=30)
        to_encode = {"sub": target_user_id, "act": {"sub": actor_id}, "exp": expire}
        return jwt.encode(to_encode, self.secret, algorithm=self.algorithm)
