"""
Tree store implementation of the chat repository.

Layout::

    chats/{chatId}/participants/{userId} -> true
    chats/{chatId}/status, createdAt, createdBy, lastMessage
    chats/{chatId}/messages/{messageId} -> {senderId, text, timestamp, type, meta?}

The message append and the lastMessage refresh in ``send_message`` are two
separate commits. Concurrent senders may leave lastMessage pointing at either
message; it is a preview, not the latest message by order-id.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError, ValidationError
from app.core.logger import logger
from app.interfaces.chat_repository import (
    ChatsCallback,
    IChatRepository,
    MembershipCallback,
    MessagesCallback,
)
from app.interfaces.tree_store import ITreeStore, TreeQuery, TreeSnapshot, Unsubscribe
from app.models.chat import (
    Chat,
    ChatBase,
    ChatMessage,
    ChatMessageBase,
    LastMessage,
    chat_from_tree,
    message_from_tree,
)
from app.models.enums import ChatStatus, MessageType
from app.utils.datetime_utils import now_millis
from app.utils.tree_utils import is_valid_key

CHATS_PATH = "chats"


def _check_id(value: str, label: str) -> str:
    if not is_valid_key(value) or value.strip() != value:
        raise ValidationError(f"Invalid {label}: {value!r}")
    return value


def _chat_path(chat_id: str, *rest: str) -> str:
    return "/".join([CHATS_PATH, _check_id(chat_id, "chat id"), *rest])


def membership_query(user_id: str) -> TreeQuery:
    """Children of ``chats`` whose participants/{user_id} is true, without their message logs."""
    return TreeQuery(
        order_by_child=f"participants/{_check_id(user_id, 'user id')}",
        equal_to=True,
        exclude=("messages",),
    )


def _messages_from_snapshot(snapshot: TreeSnapshot) -> list[ChatMessage]:
    messages = []
    for message_id, value in snapshot.children():
        try:
            messages.append(message_from_tree(message_id, value))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed message {message_id}: {e}")
    return messages


def _chats_from_snapshot(snapshot: TreeSnapshot) -> list[Chat]:
    chats = []
    for chat_id, value in snapshot.children():
        try:
            chats.append(chat_from_tree(chat_id, value))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed chat {chat_id}: {e}")
    return chats


class TreeChatRepository(IChatRepository):
    """Chat repository over a realtime tree store."""

    def __init__(self, store: ITreeStore, clock: Optional[Callable[[], int]] = None):
        self._store = store
        self._clock = clock or now_millis

    async def _require_chat(self, chat_id: str) -> None:
        if not await self.chat_exists(chat_id):
            raise NotFoundError(f"Chat {chat_id} not found")

    async def create_chat(self, participant_ids: list[str], creator_id: str) -> str:
        """Create a chat room; the creator is prepended when missing."""
        _check_id(creator_id, "user id")
        ordered = [creator_id] if creator_id not in participant_ids else []
        for uid in participant_ids:
            _check_id(uid, "user id")
            if uid not in ordered:
                ordered.append(uid)

        chat = ChatBase(
            participants={uid: True for uid in ordered},
            status=ChatStatus.OPEN,
            created_at=self._clock(),
            created_by=creator_id,
        )
        chat_id = await self._store.push(CHATS_PATH, chat.to_tree())
        logger.info(f"Chat {chat_id} created by {creator_id} with {len(ordered)} participants")
        return chat_id

    async def get_chat(self, chat_id: str) -> Optional[Chat]:
        snapshot = await self._store.get(_chat_path(chat_id))
        if not snapshot.exists() or "createdBy" not in snapshot.value:
            return None
        return chat_from_tree(chat_id, snapshot.value)

    async def chat_exists(self, chat_id: str) -> bool:
        snapshot = await self._store.get(_chat_path(chat_id, "createdBy"))
        return snapshot.exists()

    async def send_message(
        self,
        chat_id: str,
        sender_id: str,
        text: str,
        type: MessageType = MessageType.TEXT,
        meta: Optional[dict[str, Any]] = None,
    ) -> None:
        _check_id(sender_id, "sender id")
        try:
            message_type = MessageType(type)
        except ValueError as e:
            raise ValidationError(f"Invalid message type: {type!r}") from e
        await self._require_chat(chat_id)

        timestamp = self._clock()
        message = ChatMessageBase(
            sender_id=sender_id,
            text=text,
            timestamp=timestamp,
            type=message_type,
            meta=meta,
        )
        message_id = await self._store.push(_chat_path(chat_id, "messages"), message.to_tree())

        preview = LastMessage(text=text, sender_id=sender_id, timestamp=timestamp)
        try:
            await self._store.update(_chat_path(chat_id), {"lastMessage": preview.to_tree()})
        except Exception as e:
            logger.warning(
                f"Message {message_id} stored but lastMessage of chat {chat_id} not refreshed: {e}"
            )

    async def listen_to_messages(
        self,
        chat_id: str,
        callback: MessagesCallback,
        limit: int = 50,
    ) -> Unsubscribe:
        if limit < 1:
            raise ValidationError(f"limit must be positive, got {limit}")

        def on_snapshot(snapshot: TreeSnapshot) -> None:
            callback(_messages_from_snapshot(snapshot))

        return await self._store.subscribe(
            _chat_path(chat_id, "messages"),
            on_snapshot,
            query=TreeQuery(limit_to_last=limit),
        )

    async def listen_to_user_chats(self, user_id: str, callback: ChatsCallback) -> Unsubscribe:
        def on_snapshot(snapshot: TreeSnapshot) -> None:
            callback(_chats_from_snapshot(snapshot))

        return await self._store.subscribe(CHATS_PATH, on_snapshot, query=membership_query(user_id))

    async def listen_to_membership(
        self,
        chat_id: str,
        user_id: str,
        callback: MembershipCallback,
    ) -> Unsubscribe:
        path = _chat_path(chat_id, "participants", _check_id(user_id, "user id"))

        def on_snapshot(snapshot: TreeSnapshot) -> None:
            callback(snapshot.value is True)

        return await self._store.subscribe(path, on_snapshot)

    async def list_user_chats(self, user_id: str) -> list[Chat]:
        snapshot = await self._store.get(CHATS_PATH, query=membership_query(user_id))
        return _chats_from_snapshot(snapshot)

    async def update_chat_status(self, chat_id: str, status: ChatStatus) -> None:
        try:
            status = ChatStatus(status)
        except ValueError as e:
            raise ValidationError(f"Invalid chat status: {status!r}") from e
        await self._require_chat(chat_id)
        await self._store.update(_chat_path(chat_id), {"status": status.value})

    async def add_participant(self, chat_id: str, user_id: str) -> None:
        _check_id(user_id, "user id")
        await self._require_chat(chat_id)
        await self._store.set(_chat_path(chat_id, "participants", user_id), True)

    async def remove_participant(self, chat_id: str, user_id: str) -> None:
        _check_id(user_id, "user id")
        await self._require_chat(chat_id)
        await self._store.remove(_chat_path(chat_id, "participants", user_id))

    async def get_chat_messages_once(self, chat_id: str) -> list[ChatMessage]:
        snapshot = await self._store.get(_chat_path(chat_id, "messages"), query=TreeQuery())
        return _messages_from_snapshot(snapshot)

    async def remove_user_from_chats(self, user_id: str, chat_ids: list[str]) -> None:
        _check_id(user_id, "user id")
        if not chat_ids:
            return
        await self._store.update(
            CHATS_PATH,
            {f"{_check_id(chat_id, 'chat id')}/participants/{user_id}": None for chat_id in chat_ids},
        )
