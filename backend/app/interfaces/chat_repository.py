"""
Chat repository interface.

Defines the contract for chat rooms and their message logs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from app.interfaces.tree_store import Unsubscribe
from app.models.chat import Chat, ChatMessage
from app.models.enums import ChatStatus, MessageType

MessagesCallback = Callable[[list[ChatMessage]], None]
ChatsCallback = Callable[[list[Chat]], None]
MembershipCallback = Callable[[bool], None]


class IChatRepository(ABC):
    """Abstract interface for chat persistence."""

    @abstractmethod
    async def create_chat(self, participant_ids: list[str], creator_id: str) -> str:
        """
        Create a chat room.

        Args:
            participant_ids: Participant user IDs (creator is added if missing)
            creator_id: Creating user ID

        Returns:
            New chat ID
        """
        pass

    @abstractmethod
    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        """Get a chat by ID (without its message log)."""
        pass

    @abstractmethod
    async def chat_exists(self, chat_id: str) -> bool:
        """Check whether a chat record exists."""
        pass

    @abstractmethod
    async def send_message(
        self,
        chat_id: str,
        sender_id: str,
        text: str,
        type: MessageType = MessageType.TEXT,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        """
        Append a message and refresh the chat's lastMessage preview.

        Raises:
            NotFoundError: If the chat does not exist
        """
        pass

    @abstractmethod
    async def listen_to_messages(
        self,
        chat_id: str,
        callback: MessagesCallback,
        limit: int = 50,
    ) -> Unsubscribe:
        """
        Subscribe to the most recent ``limit`` messages, oldest first.

        Returns:
            Idempotent disposer
        """
        pass

    @abstractmethod
    async def listen_to_user_chats(self, user_id: str, callback: ChatsCallback) -> Unsubscribe:
        """
        Subscribe to every chat the user participates in.

        Returns:
            Idempotent disposer
        """
        pass

    @abstractmethod
    async def listen_to_membership(
        self,
        chat_id: str,
        user_id: str,
        callback: MembershipCallback,
    ) -> Unsubscribe:
        """Subscribe to whether the user is currently a participant of the chat."""
        pass

    @abstractmethod
    async def list_user_chats(self, user_id: str) -> list[Chat]:
        """One-shot read of every chat the user participates in."""
        pass

    @abstractmethod
    async def update_chat_status(self, chat_id: str, status: ChatStatus) -> None:
        """Set the chat status."""
        pass

    @abstractmethod
    async def add_participant(self, chat_id: str, user_id: str) -> None:
        """Add a user to the chat's participant set."""
        pass

    @abstractmethod
    async def remove_participant(self, chat_id: str, user_id: str) -> None:
        """Remove a user from the chat's participant set (history is kept)."""
        pass

    @abstractmethod
    async def get_chat_messages_once(self, chat_id: str) -> list[ChatMessage]:
        """One-shot read of the full message log, oldest first."""
        pass

    @abstractmethod
    async def remove_user_from_chats(self, user_id: str, chat_ids: list[str]) -> None:
        """Remove one participant key from several chats in a single multi-path write."""
        pass
