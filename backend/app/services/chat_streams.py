"""
Upstream openers for the live chat streams.

A message stream is keyed per viewer: when the viewer stops being a
participant the channel ends with a ``removed`` event and no later message
reaches them.
"""

from __future__ import annotations

from typing import Optional

from app.core.logger import logger
from app.interfaces.chat_repository import IChatRepository
from app.interfaces.tree_store import Unsubscribe
from app.models.chat import Chat, ChatMessage
from app.services.realtime_service import ChannelPublisher, UpstreamOpener


def chat_channel(chat_id: str, user_id: str) -> str:
    return f"chat:{chat_id}:{user_id}"


def user_chats_channel(user_id: str) -> str:
    return f"user-chats:{user_id}"


def messages_opener(
    repo: IChatRepository,
    chat_id: str,
    user_id: str,
    limit: int,
    watch_membership: bool = True,
) -> UpstreamOpener:
    """
    Open the live message window of a chat for one viewer.

    Args:
        repo: Chat repository
        chat_id: Chat to follow
        user_id: Viewer the channel belongs to
        limit: Window size
        watch_membership: End the channel once the viewer is no longer a
            participant (admins reading a chat they are not in skip this)
    """

    async def opener(publish: ChannelPublisher) -> Unsubscribe:
        removed = False

        def on_membership(is_member: bool) -> None:
            nonlocal removed
            if is_member or removed:
                return
            removed = True
            logger.info(f"Ending message stream of {user_id} in chat {chat_id}: not a participant")
            publish.end({"type": "removed", "chatId": chat_id})

        def on_messages(messages: list[ChatMessage]) -> None:
            if removed:
                return
            publish(
                {
                    "type": "messages",
                    "chatId": chat_id,
                    "messages": [m.model_dump(by_alias=True, mode="json") for m in messages],
                }
            )

        stop_watching: Optional[Unsubscribe] = None
        if watch_membership:
            stop_watching = await repo.listen_to_membership(chat_id, user_id, on_membership)
        try:
            stop_messages = await repo.listen_to_messages(chat_id, on_messages, limit=limit)
        except Exception:
            if stop_watching is not None:
                stop_watching()
            raise

        def unsubscribe() -> None:
            stop_messages()
            if stop_watching is not None:
                stop_watching()

        return unsubscribe

    return opener


def user_chats_opener(repo: IChatRepository, user_id: str) -> UpstreamOpener:
    """Open the live list of a user's chats."""

    async def opener(publish: ChannelPublisher) -> Unsubscribe:
        def on_chats(chats: list[Chat]) -> None:
            publish(
                {"type": "chats", "chats": [chat.model_dump(by_alias=True, mode="json") for chat in chats]}
            )

        return await repo.listen_to_user_chats(user_id, on_chats)

    return opener
