"""
Per-consumer live views over the chat repository.

A ChatSession follows one chat's message window; a UserChatsSession follows
the set of chats a user participates in. Each holds at most one open
subscription and cancels it before opening the next.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from app.core.exceptions import ValidationError
from app.interfaces.chat_repository import IChatRepository
from app.interfaces.tree_store import Unsubscribe
from app.models.chat import Chat, ChatMessage
from app.models.enums import ChatStatus, MessageType


class ChatSession:
    """Live, ordered message window for one chat at a time."""

    def __init__(
        self,
        repo: IChatRepository,
        limit: int = 50,
        on_change: Optional[Callable[[list[ChatMessage]], None]] = None,
    ):
        self._repo = repo
        self._limit = limit
        self._on_change = on_change
        self._unsubscribe: Optional[Unsubscribe] = None
        self.chat_id: Optional[str] = None
        self.messages: list[ChatMessage] = []
        self.loading = False

    async def activate(self, chat_id: Optional[str]) -> None:
        """Switch to ``chat_id``; None deactivates."""
        if chat_id == self.chat_id and self._unsubscribe is not None:
            return
        self.deactivate()
        if not chat_id:
            return

        self.chat_id = chat_id
        self.loading = True
        self._unsubscribe = await self._repo.listen_to_messages(
            chat_id, self._handle_messages, limit=self._limit
        )

    def deactivate(self) -> None:
        """Cancel the current subscription, if any. Safe to call repeatedly."""
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        self.chat_id = None
        self.messages = []
        self.loading = False

    def _handle_messages(self, messages: list[ChatMessage]) -> None:
        self.messages = messages
        self.loading = False
        if self._on_change is not None:
            self._on_change(messages)

    async def send_message(
        self,
        sender_id: str,
        text: str,
        type: MessageType = MessageType.TEXT,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        """Send into the active chat; store failures propagate to the caller."""
        if not self.chat_id:
            raise ValidationError("No active chat")
        await self._repo.send_message(self.chat_id, sender_id, text, type=type, meta=meta)

    @property
    def is_active(self) -> bool:
        return self._unsubscribe is not None

    async def __aenter__(self) -> "ChatSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.deactivate()


class UserChatsSession:
    """Live list of the chats one user participates in."""

    def __init__(
        self,
        repo: IChatRepository,
        on_change: Optional[Callable[[list[Chat]], None]] = None,
    ):
        self._repo = repo
        self._on_change = on_change
        self._unsubscribe: Optional[Unsubscribe] = None
        self.user_id: Optional[str] = None
        self.chats: list[Chat] = []
        self.loading = False

    async def activate(self, user_id: Optional[str]) -> None:
        if user_id == self.user_id and self._unsubscribe is not None:
            return
        self.deactivate()
        if not user_id:
            return

        self.user_id = user_id
        self.loading = True
        self._unsubscribe = await self._repo.listen_to_user_chats(user_id, self._handle_chats)

    def deactivate(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        self.user_id = None
        self.chats = []
        self.loading = False

    def _handle_chats(self, chats: list[Chat]) -> None:
        self.chats = chats
        self.loading = False
        if self._on_change is not None:
            self._on_change(chats)

    async def start_new_chat(self, participant_ids: list[str]) -> str:
        """Create a chat with the current user first, then ``participant_ids``."""
        if not self.user_id:
            raise ValidationError("User not authenticated")
        return await self._repo.create_chat([self.user_id, *participant_ids], self.user_id)

    async def change_chat_status(self, chat_id: str, status: ChatStatus) -> None:
        await self._repo.update_chat_status(chat_id, status)

    async def __aenter__(self) -> "UserChatsSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.deactivate()
