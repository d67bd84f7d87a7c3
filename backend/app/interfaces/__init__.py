"""Abstract interfaces for infrastructure abstraction."""

from app.interfaces.auth_provider import IAuthProvider
from app.interfaces.chat_repository import IChatRepository
from app.interfaces.tree_store import ITreeStore

__all__ = [
    "IAuthProvider",
    "IChatRepository",
    "ITreeStore",
]
