"""Pydantic models (schemas) for the application."""

from app.models.enums import ChatStatus, MessageType
from app.models.chat import (
    Chat,
    ChatCreate,
    ChatMessage,
    ChatMessageCreate,
    ChatStatusUpdate,
    LastMessage,
)
from app.models.membership import ScrubResult

__all__ = [
    # Enums
    "ChatStatus",
    "MessageType",
    # Chat
    "Chat",
    "ChatCreate",
    "ChatMessage",
    "ChatMessageCreate",
    "ChatStatusUpdate",
    "LastMessage",
    # Membership
    "ScrubResult",
]
