"""
Chat API endpoints.

Rooms, messages, participants and live Server-Sent-Event streams.
"""

import asyncio
import json
from typing import Any, AsyncGenerator, Optional

from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from app.api.deps import (
    AccountService,
    ChatRepo,
    ChatSettings,
    CurrentUser,
    Realtime,
    to_http_exception,
)
from app.core.exceptions import ChatBackendError
from app.core.logger import logger
from app.interfaces.auth_provider import User
from app.interfaces.chat_repository import IChatRepository
from app.models.chat import Chat, ChatCreate, ChatMessage, ChatMessageCreate, ChatStatusUpdate
from app.services.account_service import AccountLifecycleService
from app.services.chat_streams import (
    chat_channel,
    messages_opener,
    user_chats_channel,
    user_chats_opener,
)
from app.services.realtime_service import END_OF_STREAM, RealtimeManager, UpstreamOpener

router = APIRouter()


class ChatCreatedResponse(BaseModel):
    """Response for chat creation."""

    id: str


async def _get_accessible_chat(
    chat_id: str,
    user: User,
    repo: IChatRepository,
    accounts: AccountLifecycleService,
) -> Chat:
    """Load a chat the user participates in (admins may read any chat)."""
    try:
        chat = await repo.get_chat(chat_id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e
    if chat is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat not found")
    if not chat.is_participant(user.id) and not accounts.is_admin(user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a chat participant")
    return chat


def _event(payload: Any) -> str:
    return f"data: {json.dumps(payload, separators=(',', ':'))}\n\n"


def _sse(
    request: Request,
    realtime: RealtimeManager,
    channel: str,
    opener: UpstreamOpener,
    keepalive: float,
) -> StreamingResponse:
    """Stream a realtime channel; the channel is joined once the body is iterated."""

    async def event_generator() -> AsyncGenerator[str, None]:
        try:
            queue = await realtime.connect(channel, opener)
        except ChatBackendError as e:
            logger.warning(f"Stream {channel} not opened: {e.message}")
            yield _event({"type": "error", "detail": e.message})
            return

        try:
            yield _event({"type": "connected"})
            while True:
                if await request.is_disconnected():
                    break
                try:
                    data = await asyncio.wait_for(queue.get(), timeout=keepalive)
                except asyncio.TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                if data is END_OF_STREAM:
                    break
                yield f"data: {data}\n\n"
        finally:
            await realtime.disconnect(channel, queue)

    return StreamingResponse(event_generator(), media_type="text/event-stream")


# ===========================================
# Rooms
# ===========================================


@router.post("", response_model=ChatCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    payload: ChatCreate,
    user: CurrentUser,
    repo: ChatRepo,
):
    """Start a chat with the current user as creator and first participant."""
    try:
        chat_id = await repo.create_chat([user.id, *payload.participant_ids], user.id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e
    return ChatCreatedResponse(id=chat_id)


@router.get("", response_model=list[Chat])
async def list_chats(user: CurrentUser, repo: ChatRepo):
    """List chats the current user participates in."""
    try:
        return await repo.list_user_chats(user.id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e


@router.get("/stream")
async def stream_chats(
    user: CurrentUser,
    request: Request,
    repo: ChatRepo,
    realtime: Realtime,
    settings: ChatSettings,
):
    """Live list of the current user's chats."""
    return _sse(
        request,
        realtime,
        user_chats_channel(user.id),
        user_chats_opener(repo, user.id),
        settings.SSE_KEEPALIVE_SECONDS,
    )


@router.get("/{chat_id}", response_model=Chat)
async def get_chat(chat_id: str, user: CurrentUser, repo: ChatRepo, accounts: AccountService):
    """Get a chat room."""
    return await _get_accessible_chat(chat_id, user, repo, accounts)


@router.patch("/{chat_id}/status", status_code=status.HTTP_204_NO_CONTENT)
async def update_chat_status(
    chat_id: str,
    payload: ChatStatusUpdate,
    user: CurrentUser,
    repo: ChatRepo,
    accounts: AccountService,
):
    """Change a chat's status (open / closed / important)."""
    await _get_accessible_chat(chat_id, user, repo, accounts)
    try:
        await repo.update_chat_status(chat_id, payload.status)
    except ChatBackendError as e:
        raise to_http_exception(e) from e


# ===========================================
# Participants
# ===========================================


@router.put("/{chat_id}/participants/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def add_participant(
    chat_id: str,
    user_id: str,
    user: CurrentUser,
    repo: ChatRepo,
    accounts: AccountService,
):
    """Add a participant."""
    await _get_accessible_chat(chat_id, user, repo, accounts)
    try:
        await repo.add_participant(chat_id, user_id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e


@router.delete("/{chat_id}/participants/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_participant(
    chat_id: str,
    user_id: str,
    user: CurrentUser,
    repo: ChatRepo,
    accounts: AccountService,
):
    """Remove a participant; their messages stay in the log and their live streams end."""
    await _get_accessible_chat(chat_id, user, repo, accounts)
    try:
        await repo.remove_participant(chat_id, user_id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e


# ===========================================
# Messages
# ===========================================


@router.get("/{chat_id}/messages", response_model=list[ChatMessage])
async def list_messages(
    chat_id: str,
    user: CurrentUser,
    repo: ChatRepo,
    accounts: AccountService,
    limit: Optional[int] = Query(None, ge=1, le=1000),
):
    """Full message log, oldest first (or its last ``limit`` messages)."""
    await _get_accessible_chat(chat_id, user, repo, accounts)
    try:
        messages = await repo.get_chat_messages_once(chat_id)
    except ChatBackendError as e:
        raise to_http_exception(e) from e
    return messages[-limit:] if limit else messages


@router.post("/{chat_id}/messages", status_code=status.HTTP_204_NO_CONTENT)
async def send_message(
    chat_id: str,
    payload: ChatMessageCreate,
    user: CurrentUser,
    repo: ChatRepo,
    accounts: AccountService,
):
    """Send a message as the current user."""
    await _get_accessible_chat(chat_id, user, repo, accounts)
    try:
        await repo.send_message(chat_id, user.id, payload.text, type=payload.type, meta=payload.meta)
    except ChatBackendError as e:
        raise to_http_exception(e) from e


@router.get("/{chat_id}/messages/stream")
async def stream_messages(
    chat_id: str,
    user: CurrentUser,
    request: Request,
    repo: ChatRepo,
    accounts: AccountService,
    realtime: Realtime,
    settings: ChatSettings,
):
    """Live window of the most recent messages; ends when the viewer leaves the chat."""
    chat = await _get_accessible_chat(chat_id, user, repo, accounts)
    opener = messages_opener(
        repo,
        chat_id,
        user.id,
        limit=settings.MESSAGE_WINDOW_LIMIT,
        watch_membership=chat.is_participant(user.id) or not accounts.is_admin(user.id),
    )
    return _sse(
        request,
        realtime,
        chat_channel(chat_id, user.id),
        opener,
        settings.SSE_KEEPALIVE_SECONDS,
    )
