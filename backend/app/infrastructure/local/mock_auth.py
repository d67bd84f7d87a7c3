"""
Mock authentication provider for local development.
"""

from app.interfaces.auth_provider import IAuthProvider, User
from app.utils.tree_utils import is_valid_key


class MockAuthProvider(IAuthProvider):
    """Mock auth provider: the bearer token is the user ID."""

    def __init__(self, enabled: bool = False):
        """
        Initialize mock auth provider.

        Args:
            enabled: Whether authentication is required
        """
        self._enabled = enabled

    async def verify_token(self, token: str) -> User:
        """
        Verify token - in mock mode, token is treated as user_id.

        Args:
            token: User ID (in mock mode)

        Returns:
            Mock user

        Raises:
            ValueError: Token cannot be used as a user ID (empty, or
                containing '/' or any of ``.#$[]``)
        """
        if not is_valid_key(token):
            raise ValueError("Invalid token: user IDs cannot contain '/.#$[]'")
        return User(id=token, email=f"{token}@example.com", display_name=token)

    def is_enabled(self) -> bool:
        """Check if authentication is enabled."""
        return self._enabled
