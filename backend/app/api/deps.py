"""
Dependency injection for API endpoints.

Components come from the ChatContext the application lifespan attaches to
``app.state``; nothing here holds a module-level store connection.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ChatBackendError,
    NotFoundError,
    ValidationError,
)
from app.infrastructure.local.mock_auth import MockAuthProvider
from app.interfaces.auth_provider import IAuthProvider, User
from app.interfaces.chat_repository import IChatRepository
from app.services.account_service import AccountLifecycleService
from app.services.chat_context import ChatContext
from app.services.realtime_service import RealtimeManager


# ===========================================
# Context Dependencies
# ===========================================


def get_chat_context(request: Request) -> ChatContext:
    """Get the chat context created at startup."""
    context = getattr(request.app.state, "chat_context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat backend not initialized",
        )
    return context


def get_chat_repository(context: ChatContext = Depends(get_chat_context)) -> IChatRepository:
    """Get chat repository instance."""
    return context.chat_repo


def get_realtime_manager(context: ChatContext = Depends(get_chat_context)) -> RealtimeManager:
    """Get realtime stream manager."""
    return context.realtime


def get_account_service(
    context: ChatContext = Depends(get_chat_context),
) -> AccountLifecycleService:
    """Get account lifecycle service."""
    return context.account_service


def get_chat_settings(context: ChatContext = Depends(get_chat_context)) -> Settings:
    """Get the settings the chat context was built with."""
    return context.settings


# ===========================================
# Provider Dependencies
# ===========================================


@lru_cache()
def get_auth_provider() -> IAuthProvider:
    """Get auth provider instance."""
    settings = get_settings()
    if settings.AUTH_PROVIDER == "mock":
        return MockAuthProvider(enabled=True)
    raise ValueError(f"Unknown AUTH_PROVIDER: {settings.AUTH_PROVIDER}")


# ===========================================
# User Authentication
# ===========================================


async def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
    auth_provider: IAuthProvider = Depends(get_auth_provider),
) -> User:
    """
    Get current authenticated user.

    With authentication disabled, returns a development user.
    """
    if not auth_provider.is_enabled():
        return User(id="dev_user", email="dev@example.com", display_name="Developer")

    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
        )

    # Extract token from "Bearer <token>"
    try:
        scheme, token = authorization.split()
        if scheme.lower() != "bearer":
            raise ValueError("Invalid scheme")
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    try:
        return await auth_provider.verify_token(token)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )


# ===========================================
# Error Mapping
# ===========================================


def to_http_exception(exc: ChatBackendError) -> HTTPException:
    """Map a chat backend error to its HTTP status."""
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, AuthenticationError):
        code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, AuthorizationError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_502_BAD_GATEWAY
    return HTTPException(status_code=code, detail=exc.message)


# ===========================================
# Type Aliases for Dependency Injection
# ===========================================

ChatRepo = Annotated[IChatRepository, Depends(get_chat_repository)]
Realtime = Annotated[RealtimeManager, Depends(get_realtime_manager)]
AccountService = Annotated[AccountLifecycleService, Depends(get_account_service)]
ChatSettings = Annotated[Settings, Depends(get_chat_settings)]
CurrentUser = Annotated[User, Depends(get_current_user)]
