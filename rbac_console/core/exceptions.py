"""Custom exception classes for the RBAC console."""

from fastapi import HTTPException, status


class RBACConsoleError(Exception):
    """Base exception for the RBAC console."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthenticationError(RBACConsoleError):
    """Raised when a name/credential pair does not match an active user."""
    status_code = status.HTTP_401_UNAUTHORIZED


class ConnectivityError(RBACConsoleError):
    """Raised when the persistence or auth service cannot be reached."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class AuthorizationError(RBACConsoleError):
    """Raised when the caller lacks a required permission."""
    status_code = status.HTTP_403_FORBIDDEN


class ResourceNotFoundError(RBACConsoleError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND


class ResourceConflictError(RBACConsoleError):
    """Raised when a resource already exists or is still referenced."""
    status_code = status.HTTP_409_CONFLICT


class ProtectedRoleError(ResourceConflictError):
    """Raised on a mutation that would break the administrator role."""


class ValidationError(RBACConsoleError):
    """Raised when input validation fails."""
    pass


# HTTP exception shortcuts
def not_found(detail: str = "Resource not found") -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
