"""
Unit tests for ChatSession and UserChatsSession.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models.enums import ChatStatus
from app.services.chat_session_service import ChatSession, UserChatsSession


class TestChatSession:
    @pytest.mark.asyncio
    async def test_activate_delivers_window(self, repo):
        chat_id = await repo.create_chat(["alice", "bob"], "alice")
        await repo.send_message(chat_id, "bob", "hey")
        session = ChatSession(repo)

        await session.activate(chat_id)

        assert session.is_active
        assert session.loading is False
        assert [m.text for m in session.messages] == ["hey"]

    @pytest.mark.asyncio
    async def test_send_updates_live_view(self, repo):
        chat_id = await repo.create_chat(["alice", "bob"], "alice")
        seen = []
        session = ChatSession(repo, on_change=seen.append)
        await session.activate(chat_id)

        await session.send_message("alice", "first")
        await session.send_message("alice", "second")

        assert [m.text for m in session.messages] == ["first", "second"]
        assert len(seen) == 3

    @pytest.mark.asyncio
    async def test_switching_chats_cancels_previous(self, repo, store):
        first = await repo.create_chat(["alice"], "alice")
        second = await repo.create_chat(["alice"], "alice")
        session = ChatSession(repo)

        await session.activate(first)
        await session.activate(second)
        await repo.send_message(first, "alice", "only in first")

        assert session.chat_id == second
        assert session.messages == []
        assert store.listener_count == 1

    @pytest.mark.asyncio
    async def test_reactivating_same_chat_keeps_subscription(self, repo, store):
        chat_id = await repo.create_chat(["alice"], "alice")
        session = ChatSession(repo)

        await session.activate(chat_id)
        await session.activate(chat_id)

        assert store.listener_count == 1

    @pytest.mark.asyncio
    async def test_deactivate_is_idempotent(self, repo, store):
        chat_id = await repo.create_chat(["alice"], "alice")
        session = ChatSession(repo)
        await session.activate(chat_id)

        session.deactivate()
        session.deactivate()

        assert not session.is_active
        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_context_manager_releases_subscription(self, repo, store):
        chat_id = await repo.create_chat(["alice"], "alice")

        async with ChatSession(repo) as session:
            await session.activate(chat_id)
            assert store.listener_count == 1

        assert store.listener_count == 0

    @pytest.mark.asyncio
    async def test_send_without_chat_raises(self, repo):
        session = ChatSession(repo)

        with pytest.raises(ValidationError):
            await session.send_message("alice", "nowhere")

    @pytest.mark.asyncio
    async def test_send_failure_propagates(self):
        repo = MagicMock()
        repo.listen_to_messages = AsyncMock(return_value=lambda: None)
        repo.send_message = AsyncMock(side_effect=ConnectionError("offline"))
        session = ChatSession(repo)
        await session.activate("c1")

        with pytest.raises(ConnectionError):
            await session.send_message("alice", "hi")

        repo.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_to_deleted_chat_propagates_not_found(self, repo):
        session = ChatSession(repo)
        await session.activate("ghost")

        with pytest.raises(NotFoundError):
            await session.send_message("alice", "hi")


class TestUserChatsSession:
    @pytest.mark.asyncio
    async def test_start_new_chat_puts_user_first(self, repo):
        session = UserChatsSession(repo)
        await session.activate("alice")

        chat_id = await session.start_new_chat(["bob"])

        assert [c.id for c in session.chats] == [chat_id]
        assert list(session.chats[0].participants) == ["alice", "bob"]
        assert session.chats[0].created_by == "alice"

    @pytest.mark.asyncio
    async def test_change_status_is_reflected(self, repo):
        session = UserChatsSession(repo)
        await session.activate("alice")
        chat_id = await session.start_new_chat(["bob"])

        await session.change_chat_status(chat_id, ChatStatus.IMPORTANT)

        assert session.chats[0].status == ChatStatus.IMPORTANT

    @pytest.mark.asyncio
    async def test_start_without_user_raises(self, repo):
        session = UserChatsSession(repo)

        with pytest.raises(ValidationError):
            await session.start_new_chat(["bob"])

    @pytest.mark.asyncio
    async def test_switch_user(self, repo, store):
        await repo.create_chat(["alice"], "alice")
        session = UserChatsSession(repo)

        await session.activate("alice")
        await session.activate("bob")

        assert session.chats == []
        assert store.listener_count == 1
