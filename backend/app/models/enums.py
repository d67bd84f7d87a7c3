"""
Enum definitions for the application.

These enums are used across models and provide type-safe status values.
"""

from enum import Enum


class ChatStatus(str, Enum):
    """Chat room status."""

    OPEN = "open"
    CLOSED = "closed"
    IMPORTANT = "important"


class MessageType(str, Enum):
    """Kind of content carried by a chat message."""

    TEXT = "text"
    IMAGE = "image"
