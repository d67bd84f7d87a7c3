"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class ChatBackendError(Exception):
    """Base exception for the storefront chat backend."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(ChatBackendError):
    """Resource not found."""

    pass


class ValidationError(ChatBackendError):
    """Validation error."""

    pass


class AuthenticationError(ChatBackendError):
    """Authentication failed."""

    pass


class AuthorizationError(ChatBackendError):
    """Authorization failed."""

    pass


class ForbiddenError(AuthorizationError):
    """Forbidden operation (authorization denied)."""

    pass


class InfrastructureError(ChatBackendError):
    """Infrastructure-related error (tree store, database, etc.)."""

    pass
