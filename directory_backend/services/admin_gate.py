"""Admin request gate: the choke point in front of every privileged operation.

Stages run in order and the first failure short-circuits:

1. authenticate through the session provider   -> Unauthorized
2. extract advisory request metadata (IP, user agent)
3. rate-limit by user key, then by IP key      -> RateLimited
4. check the required permission, if any       -> Forbidden

Authentication precedes the limiter so unauthenticated traffic never spends
an admin's budget, and the limiter precedes the permission lookup so probing
for Forbidden vs Unauthorized is still throttled.
"""

import logging
from typing import Mapping, Optional

from sqlalchemy.orm import Session

from directory_backend.core.exceptions import Unauthorized, Forbidden
from directory_backend.core.permissions import Permission
from directory_backend.core.security import SessionProvider
from directory_backend.schemas.schemas import AdminContext, RequestMetadata
from directory_backend.services.rate_limit_service import RateLimiter
from directory_backend.services.rbac_service import RBACService

logger = logging.getLogger(__name__)

MAX_IP_LENGTH = 45


def get_client_ip(headers: Mapping[str, str]) -> Optional[str]:
    """Best-effort client IP from proxy headers, truncated to 45 chars."""
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first[:MAX_IP_LENGTH]

    for header in ("x-real-ip", "cf-connecting-ip"):
        value = headers.get(header)
        if value:
            return value[:MAX_IP_LENGTH]
    return None


def extract_request_metadata(headers: Mapping[str, str]) -> RequestMetadata:
    return RequestMetadata(
        ip_address=get_client_ip(headers),
        user_agent=headers.get("user-agent"),
    )


class AdminGate:
    """Authenticates, throttles and authorizes admin requests."""

    def __init__(self, session_provider: SessionProvider, rate_limiter: RateLimiter):
        self.session_provider = session_provider
        self.rate_limiter = rate_limiter

    def require(
        self,
        headers: Mapping[str, str],
        db: Session,
        permission: Optional[Permission] = None,
    ) -> AdminContext:
        """Run the gate for one request.

        Raises:
            Unauthorized: No session.
            RateLimited: The user key or the IP key is over budget.
            Forbidden: ``permission`` was given and is not granted.
        """
        user = self.session_provider.get_session(headers)
        if user is None:
            logger.warning("Admin request rejected: no session")
            raise Unauthorized()

        metadata = extract_request_metadata(headers)

        self.rate_limiter.hit(f"admin:{user.id}")
        if metadata.ip_address:
            self.rate_limiter.hit(f"admin-ip:{metadata.ip_address}")

        if permission is not None and not RBACService(db).has_permission(user.id, permission):
            logger.warning(
                "Admin request forbidden: user=%s permission=%s ip=%s",
                user.id, getattr(permission, "value", permission), metadata.ip_address,
            )
            raise Forbidden()

        return AdminContext(user=user, metadata=metadata)
