"""
Unit tests for the chat and account HTTP endpoints.

Streaming routes are driven through the raw ASGI interface: the test client
buffers a response until the app finishes it.
"""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from app.api.chats import _sse
from app.core.config import Settings
from app.core.exceptions import ValidationError
from app.infrastructure.local.tree_store import InMemoryTreeStore
from app.services.chat_context import ChatContext
from app.services.chat_streams import chat_channel, messages_opener, user_chats_channel
from app.services.realtime_service import RealtimeManager
from main import create_app


def _auth(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_id}"}


@pytest.fixture
def context():
    settings = Settings(
        TREE_STORE_BACKEND="memory",
        ADMIN_USER_IDS=["root"],
        SSE_KEEPALIVE_SECONDS=0.05,
    )
    return ChatContext(InMemoryTreeStore(), settings=settings)


@pytest.fixture
def client(context):
    with TestClient(create_app(context)) as test_client:
        yield test_client


@pytest.fixture
def chat_id(client):
    response = client.post("/api/chats", json={"participant_ids": ["bob"]}, headers=_auth("alice"))
    assert response.status_code == 201
    return response.json()["id"]


def test_requires_authorization(client):
    response = client.get("/api/chats")

    assert response.status_code == 401


def test_create_and_get_chat(client, chat_id):
    response = client.get(f"/api/chats/{chat_id}", headers=_auth("bob"))

    assert response.status_code == 200
    body = response.json()
    assert body["participants"] == {"alice": True, "bob": True}
    assert body["status"] == "open"
    assert body["createdBy"] == "alice"


def test_list_chats_only_returns_memberships(client, chat_id):
    client.post("/api/chats", json={"participant_ids": []}, headers=_auth("carol"))

    response = client.get("/api/chats", headers=_auth("bob"))

    assert [chat["id"] for chat in response.json()] == [chat_id]


def test_send_and_read_messages(client, chat_id):
    for sender, text in [("alice", "hi"), ("bob", "yo"), ("alice", "deal?")]:
        response = client.post(
            f"/api/chats/{chat_id}/messages", json={"text": text}, headers=_auth(sender)
        )
        assert response.status_code == 204

    messages = client.get(f"/api/chats/{chat_id}/messages", headers=_auth("bob")).json()
    window = client.get(f"/api/chats/{chat_id}/messages?limit=2", headers=_auth("bob")).json()
    chat = client.get(f"/api/chats/{chat_id}", headers=_auth("bob")).json()

    assert [m["text"] for m in messages] == ["hi", "yo", "deal?"]
    assert [m["senderId"] for m in messages] == ["alice", "bob", "alice"]
    assert [m["text"] for m in window] == ["yo", "deal?"]
    assert chat["lastMessage"]["text"] == "deal?"


def test_non_participant_is_forbidden(client, chat_id):
    response = client.post(
        f"/api/chats/{chat_id}/messages", json={"text": "intrude"}, headers=_auth("mallory")
    )

    assert response.status_code == 403


def test_admin_may_read_any_chat(client, chat_id):
    response = client.get(f"/api/chats/{chat_id}/messages", headers=_auth("root"))

    assert response.status_code == 200


def test_unknown_chat_is_404(client):
    response = client.patch(
        "/api/chats/missing/status", json={"status": "closed"}, headers=_auth("alice")
    )

    assert response.status_code == 404


def test_status_update(client, chat_id):
    response = client.patch(
        f"/api/chats/{chat_id}/status", json={"status": "important"}, headers=_auth("bob")
    )

    assert response.status_code == 204
    assert client.get(f"/api/chats/{chat_id}", headers=_auth("bob")).json()["status"] == "important"


def test_invalid_status_is_422(client, chat_id):
    response = client.patch(
        f"/api/chats/{chat_id}/status", json={"status": "archived"}, headers=_auth("bob")
    )

    assert response.status_code == 422


def test_participant_add_and_remove(client, chat_id):
    assert client.put(f"/api/chats/{chat_id}/participants/carol", headers=_auth("alice")).status_code == 204
    assert client.get(f"/api/chats/{chat_id}", headers=_auth("carol")).status_code == 200

    assert client.delete(f"/api/chats/{chat_id}/participants/carol", headers=_auth("alice")).status_code == 204
    assert client.get(f"/api/chats/{chat_id}", headers=_auth("carol")).status_code == 403


def test_delete_my_account_scrubs_chats(client, chat_id):
    client.post(f"/api/chats/{chat_id}/messages", json={"text": "bye"}, headers=_auth("bob"))

    response = client.delete("/api/users/me", headers=_auth("bob"))

    assert response.status_code == 200
    assert response.json()["removed_chat_ids"] == [chat_id]
    chat = client.get(f"/api/chats/{chat_id}", headers=_auth("alice")).json()
    assert chat["participants"] == {"alice": True}
    messages = client.get(f"/api/chats/{chat_id}/messages", headers=_auth("alice")).json()
    assert [m["senderId"] for m in messages] == ["bob"]


def test_admin_delete_user(client, chat_id):
    assert client.delete("/api/users/bob", headers=_auth("alice")).status_code == 403
    assert client.delete("/api/users/root", headers=_auth("root")).status_code == 400

    response = client.delete("/api/users/bob", headers=_auth("root"))

    assert response.status_code == 200
    assert response.json()["removed_chat_ids"] == [chat_id]


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


# ============================================
# User ids
# ============================================


def test_token_that_is_not_a_valid_user_id_is_401(client, chat_id):
    headers = _auth("alice@example.com")

    assert client.get("/api/chats", headers=headers).status_code == 401
    assert client.post("/api/chats", json={"participant_ids": []}, headers=headers).status_code == 401
    assert client.delete("/api/users/me", headers=headers).status_code == 401


def test_dotted_ids_in_requests_are_400(client, chat_id):
    assert client.get("/api/chats/a.b", headers=_auth("alice")).status_code == 400
    assert client.put(f"/api/chats/{chat_id}/participants/a.b", headers=_auth("alice")).status_code == 400
    assert (
        client.post(
            "/api/chats", json={"participant_ids": ["bob@example.com"]}, headers=_auth("alice")
        ).status_code
        == 400
    )
    assert client.delete("/api/users/a.b", headers=_auth("root")).status_code == 400


# ============================================
# Streams
# ============================================


class AsgiStream:
    """One streaming GET driven through the ASGI interface."""

    def __init__(self, app, path: str, user_id: str):
        self.status = None
        self._chunks: list[str] = []
        self._request_sent = False
        self._disconnected = asyncio.Event()
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "GET",
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [(b"authorization", f"Bearer {user_id}".encode())],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        self.task = asyncio.create_task(app(scope, self._receive, self._send))

    async def _receive(self):
        if not self._request_sent:
            self._request_sent = True
            return {"type": "http.request", "body": b"", "more_body": False}
        await self._disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message):
        if message["type"] == "http.response.start":
            self.status = message["status"]
        elif message["type"] == "http.response.body":
            self._chunks.append(message.get("body", b"").decode())

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def events(self) -> list:
        return [
            json.loads(line[len("data: "):])
            for line in self.text.split("\n")
            if line.startswith("data: ")
        ]

    async def wait_for(self, predicate, timeout: float = 2.0) -> None:
        async def poll():
            while not predicate(self):
                await asyncio.sleep(0.01)

        await asyncio.wait_for(poll(), timeout)

    async def close(self) -> None:
        self._disconnected.set()
        await asyncio.wait_for(self.task, 2.0)


class IdleRequest:
    async def is_disconnected(self) -> bool:
        return False


@pytest.fixture
def app(context):
    return create_app(context)


def test_stream_of_unknown_or_foreign_chat_is_rejected(client, chat_id):
    assert client.get("/api/chats/missing/messages/stream", headers=_auth("bob")).status_code == 404
    assert (
        client.get(f"/api/chats/{chat_id}/messages/stream", headers=_auth("mallory")).status_code
        == 403
    )


@pytest.mark.asyncio
async def test_message_stream_ends_when_viewer_is_removed(app, context):
    repo = context.chat_repo
    chat_id = await repo.create_chat(["alice", "bob"], "alice")
    await repo.send_message(chat_id, "alice", "hi")
    channel = chat_channel(chat_id, "bob")

    stream = AsgiStream(app, f"/api/chats/{chat_id}/messages/stream", "bob")
    await stream.wait_for(lambda s: len(s.events()) >= 2)

    assert stream.status == 200
    connected, window = stream.events()[:2]
    assert connected == {"type": "connected"}
    assert [m["text"] for m in window["messages"]] == ["hi"]
    assert context.realtime.connection_count(channel) == 1

    await repo.remove_participant(chat_id, "bob")
    await repo.send_message(chat_id, "alice", "secret after removal")
    await asyncio.wait_for(stream.task, 2.0)

    assert stream.events()[-1] == {"type": "removed", "chatId": chat_id}
    assert "secret after removal" not in stream.text
    assert context.realtime.connection_count(channel) == 0


@pytest.mark.asyncio
async def test_chats_stream_releases_channel_on_disconnect(app, context):
    channel = user_chats_channel("bob")
    stream = AsgiStream(app, "/api/chats/stream", "bob")
    await stream.wait_for(lambda s: len(s.events()) >= 2)

    chat_id = await context.chat_repo.create_chat(["bob"], "alice")
    await stream.wait_for(lambda s: len(s.events()) >= 3)

    assert [event["type"] for event in stream.events()] == ["connected", "chats", "chats"]
    assert [chat["id"] for chat in stream.events()[-1]["chats"]] == [chat_id]
    assert context.realtime.connection_count(channel) == 1

    await stream.close()

    assert context.realtime.connection_count(channel) == 0
    assert context.store.listener_count == 0


@pytest.mark.asyncio
async def test_idle_stream_sends_keep_alive(app, context):
    stream = AsgiStream(app, "/api/chats/stream", "bob")

    await stream.wait_for(lambda s: ": keep-alive" in s.text)
    await stream.close()

    assert context.realtime.connection_count(user_chats_channel("bob")) == 0


@pytest.mark.asyncio
async def test_account_deletion_ends_inbox_stream(app, context):
    stream = AsgiStream(app, "/api/chats/stream", "bob")
    await stream.wait_for(lambda s: len(s.events()) >= 2)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        response = await http.delete("/api/users/me", headers=_auth("bob"))
    await asyncio.wait_for(stream.task, 2.0)

    assert response.status_code == 200
    assert stream.events()[-1] == {"type": "account_deleted"}
    assert context.realtime.connection_count(user_chats_channel("bob")) == 0


@pytest.mark.asyncio
async def test_stream_joins_channel_only_once_iterated(repo):
    realtime = RealtimeManager()
    chat_id = await repo.create_chat(["alice"], "alice")
    channel = chat_channel(chat_id, "alice")

    response = _sse(
        IdleRequest(), realtime, channel, messages_opener(repo, chat_id, "alice", limit=50), 1.0
    )
    assert realtime.connection_count(channel) == 0

    body = response.body_iterator
    assert await body.__anext__() == 'data: {"type":"connected"}\n\n'
    assert realtime.connection_count(channel) == 1

    await body.aclose()
    assert realtime.connection_count(channel) == 0


@pytest.mark.asyncio
async def test_stream_that_fails_to_open_reports_error():
    realtime = RealtimeManager()

    async def rejecting(publish):
        raise ValidationError("Invalid user id: 'a.b'")

    response = _sse(IdleRequest(), realtime, "user-chats:a.b", rejecting, 1.0)
    chunks = [chunk async for chunk in response.body_iterator]

    assert chunks == ['data: {"type":"error","detail":"Invalid user id: \'a.b\'"}\n\n']
    assert realtime.connection_count("user-chats:a.b") == 0
