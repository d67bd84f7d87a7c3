"""
Chat room and message models.

Attributes are snake_case; aliases match the persisted tree layout
(``chats/{chatId}/...``) so records round-trip through the tree store as-is.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ChatStatus, MessageType


class TreeModel(BaseModel):
    """Base model for records stored in the tree."""

    model_config = ConfigDict(populate_by_name=True)

    def to_tree(self) -> dict[str, Any]:
        """Serialize to the persisted (camelCase) layout."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class LastMessage(TreeModel):
    """Denormalized preview of the most recent message in a chat."""

    text: str
    sender_id: str = Field(..., alias="senderId")
    timestamp: int


class ChatMessageBase(TreeModel):
    """Base chat message fields."""

    sender_id: str = Field(..., alias="senderId")
    text: str = ""
    timestamp: int
    type: MessageType = MessageType.TEXT
    meta: Optional[dict[str, Any]] = None


class ChatMessage(ChatMessageBase):
    """Chat message with its store-assigned ordering id."""

    id: str


class ChatBase(TreeModel):
    """Base chat room fields."""

    participants: dict[str, bool] = Field(default_factory=dict)
    status: ChatStatus = ChatStatus.OPEN
    created_at: int = Field(..., alias="createdAt")
    created_by: str = Field(..., alias="createdBy")
    last_message: Optional[LastMessage] = Field(None, alias="lastMessage")


class Chat(ChatBase):
    """Chat room model with its id."""

    id: str

    @property
    def member_ids(self) -> list[str]:
        """User ids whose participant flag is true."""
        return [uid for uid, present in self.participants.items() if present is True]

    def is_participant(self, user_id: str) -> bool:
        return self.participants.get(user_id) is True


class ChatCreate(BaseModel):
    """Schema for creating a chat."""

    participant_ids: list[str] = Field(default_factory=list, description="Other participants")


class ChatMessageCreate(BaseModel):
    """Schema for sending a message."""

    text: str = Field(..., description="Message content")
    type: MessageType = MessageType.TEXT
    meta: Optional[dict[str, Any]] = None


class ChatStatusUpdate(BaseModel):
    """Schema for a status transition."""

    status: ChatStatus


def message_from_tree(message_id: str, value: dict[str, Any]) -> ChatMessage:
    """Build a ChatMessage from a tree snapshot child."""
    return ChatMessage.model_validate({**value, "id": message_id})


def chat_from_tree(chat_id: str, value: dict[str, Any]) -> Chat:
    """Build a Chat from a tree snapshot child, dropping the message log."""
    fields = {key: item for key, item in value.items() if key != "messages"}
    return Chat.model_validate({**fields, "id": chat_id})
