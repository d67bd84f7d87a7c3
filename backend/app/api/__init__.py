"""API routers."""

from app.api import chats, users

__all__ = [
    "chats",
    "users",
]
