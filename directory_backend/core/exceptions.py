"""Named failures for the admin back-office and their HTTP mapping."""

from typing import Optional

from fastapi import status


class DirectoryError(Exception):
    """Base exception for the directory back-office."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class Unauthorized(DirectoryError):
    """Raised when no valid session was found."""
    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Sign in required"):
        super().__init__(message)


class Forbidden(DirectoryError):
    """Raised when the principal lacks the required permission."""
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class RateLimited(DirectoryError):
    """Raised when an admin throttle key is over budget. Retryable."""
    status_code = status.HTTP_429_TOO_MANY_REQUESTS

    def __init__(self, retry_after: Optional[float] = None, message: str = "Too many requests"):
        self.retry_after = retry_after
        super().__init__(message)


class RoleNotFound(DirectoryError):
    """Raised when a write path names a role that was never seeded."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, role: str = ""):
        self.role = role
        super().__init__(f"Role not found: {role}" if role else "Role not found")


class BadRequest(DirectoryError):
    """Raised for requests the handler layer refuses outright."""
    pass


class ReservedRoleError(BadRequest):
    """Raised when assigning a role owned by the external auth provider."""
    pass

